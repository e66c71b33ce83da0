"""Fixtures wiring the resolver to in-memory collaborators."""

from __future__ import annotations

import pytest

from capes.services.cape_service import CapeResolver, RequestCoalescer
from capes.services.image_pipeline import DerivedImagePipeline
from tests.unit.fakes import (
    BASE_URL,
    FRESHNESS,
    FakeAnimatedProvider,
    FakeClock,
    FakeContentStore,
    FakeIdentityResolver,
    FakeProvider,
    FakeRecordStore,
    make_png,
    make_sheet,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def records() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def identity() -> FakeIdentityResolver:
    return FakeIdentityResolver()


@pytest.fixture
def content_store() -> FakeContentStore:
    return FakeContentStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(make_png())


@pytest.fixture
def animated_provider() -> FakeAnimatedProvider:
    return FakeAnimatedProvider(make_sheet(frames=3))


@pytest.fixture
def pipeline(content_store: FakeContentStore) -> DerivedImagePipeline:
    return DerivedImagePipeline(
        content_store,  # type: ignore[arg-type]
        upload_timeout=5.0,
        settle_seconds=0,
        transform_scale=2,
    )


@pytest.fixture
def resolver(
    records: FakeRecordStore,
    identity: FakeIdentityResolver,
    provider: FakeProvider,
    animated_provider: FakeAnimatedProvider,
    pipeline: DerivedImagePipeline,
    clock: FakeClock,
) -> CapeResolver:
    return CapeResolver(
        records=records,  # type: ignore[arg-type]
        identity=identity,  # type: ignore[arg-type]
        providers={"fake": provider, "fakeanimated": animated_provider},
        pipeline=pipeline,
        coalescer=RequestCoalescer(),
        freshness_seconds=FRESHNESS,
        identity_timeout=1.0,
        provider_timeout=1.0,
        base_url=BASE_URL,
        clock=clock,
    )
