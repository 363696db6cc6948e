"""
Research orchestrator tests (cache-or-compute identify, idempotent process)
"""

import asyncio
import pytest
from app.services.research.limiter import ResearchLimiter
from app.services.research.orchestrator import ResearchOrchestrator
from fakes import FakeStore, FakeEngine, FakeIdentifier

USER = 'user-1'
ANALYSIS = 'analysis-1'


@pytest.mark.asyncio
async def test_identify_creates_topics_once_then_serves_cache(orchestrator, identifier, store):
    """Test a second identify returns the same ids without calling the model"""
    first = await orchestrator.identify(USER, ANALYSIS, 'thread')
    second = await orchestrator.identify(USER, ANALYSIS, 'thread')

    assert identifier.calls == 1
    assert [t['id'] for t in first] == [t['id'] for t in second]
    assert [t['topic'] for t in first] == ['Vendor lock-in', 'SOC 2 timelines', 'Pricing tiers']
    assert all(t['isLoading'] for t in first)
    assert len(store.topics) == 3


@pytest.mark.asyncio
async def test_identify_with_zero_topics_stores_nothing(store, engine):
    orchestrator = ResearchOrchestrator(store, engine, FakeIdentifier([]), ResearchLimiter())

    assert await orchestrator.identify(USER, ANALYSIS, 'thread') == []
    assert store.topics == []
    assert store.insert_calls == 0


@pytest.mark.asyncio
async def test_concurrent_identify_inserts_one_topic_set(store, engine):
    """Test two racing callers end up with a single topic set"""
    orchestrator = ResearchOrchestrator(store, engine, FakeIdentifier(['A', 'B']), ResearchLimiter())

    first, second = await asyncio.gather(
        orchestrator.identify(USER, ANALYSIS, 'thread'),
        orchestrator.identify(USER, ANALYSIS, 'thread'),
    )

    assert len(store.topics) == 2
    assert [t['id'] for t in first] == [t['id'] for t in second]


@pytest.mark.asyncio
async def test_process_stores_result_and_clears_loading(orchestrator, store):
    topics = await orchestrator.identify(USER, ANALYSIS, 'thread')
    target = topics[0]

    outcome = await orchestrator.process(USER, ANALYSIS, target['id'], target['topic'], None, 'thread')

    assert outcome.success is True
    assert outcome.result['topic'] == 'Vendor lock-in'
    assert store.results[target['id']]['content'] == outcome.result
    assert store.topics[0]['is_loading'] is False

    cached = await orchestrator.identify(USER, ANALYSIS, 'thread')
    assert cached[0]['isLoading'] is False
    assert cached[0]['tldr'] == outcome.result['tldr']
    assert cached[1]['isLoading'] is True


@pytest.mark.asyncio
async def test_process_twice_keeps_one_row_with_latest_content(orchestrator, store):
    """Test retries overwrite the previous result"""
    topics = await orchestrator.identify(USER, ANALYSIS, 'thread')
    topic_id = topics[0]['id']

    await orchestrator.process(USER, ANALYSIS, topic_id, 'Vendor lock-in', None, 'thread')
    second = await orchestrator.process(USER, ANALYSIS, topic_id, 'Vendor lock-in', None, 'thread')

    assert len(store.results) == 1
    assert store.results[topic_id]['content']['tldr'] == second.result['tldr'] == ['Vendor lock-in run 2']


@pytest.mark.asyncio
async def test_process_degraded_outcome_reports_failure(store, identifier):
    engine = FakeEngine(failing={'Vendor lock-in'})
    orchestrator = ResearchOrchestrator(store, engine, identifier, ResearchLimiter())
    topics = await orchestrator.identify(USER, ANALYSIS, 'thread')

    outcome = await orchestrator.process(USER, ANALYSIS, topics[0]['id'], 'Vendor lock-in', None, 'thread')

    assert outcome.success is False
    assert outcome.result['sections'][0]['id'] == 'error'
    # failure brief is still persisted so a retry can overwrite it
    assert topics[0]['id'] in store.results


@pytest.mark.asyncio
async def test_retry_after_failure_overwrites_error_brief(store, identifier):
    engine = FakeEngine(failing={'Vendor lock-in'})
    orchestrator = ResearchOrchestrator(store, engine, identifier, ResearchLimiter())
    topics = await orchestrator.identify(USER, ANALYSIS, 'thread')
    topic_id = topics[0]['id']

    await orchestrator.process(USER, ANALYSIS, topic_id, 'Vendor lock-in', None, 'thread')
    engine.failing.clear()
    retried = await orchestrator.process(USER, ANALYSIS, topic_id, 'Vendor lock-in', None, 'thread')

    assert retried.success is True
    assert store.results[topic_id]['content']['sections'][0]['id'] == 'key_points'


@pytest.mark.asyncio
async def test_process_returns_brief_when_persistence_fails(orchestrator, store):
    topics = await orchestrator.identify(USER, ANALYSIS, 'thread')
    store.fail_upsert = True

    outcome = await orchestrator.process(USER, ANALYSIS, topics[0]['id'], 'Vendor lock-in', None, 'thread')

    assert outcome.success is True
    assert outcome.result['topic'] == 'Vendor lock-in'
    assert store.results == {}
    assert store.topics[0]['is_loading'] is True


@pytest.mark.asyncio
async def test_research_all_processes_pending_topics_in_order(orchestrator, engine, store):
    results = await orchestrator.research_all(USER, ANALYSIS, 'thread')

    assert engine.calls == ['Vendor lock-in', 'SOC 2 timelines', 'Pricing tiers']
    assert all(r['success'] for r in results)
    assert len(store.results) == 3

    # Nothing left to do on a second pass
    await orchestrator.research_all(USER, ANALYSIS, 'thread')
    assert len(engine.calls) == 3


@pytest.mark.asyncio
async def test_engine_runs_are_bounded_by_limiter(store, identifier):
    engine = FakeEngine(delay=0.01)
    limiter = ResearchLimiter(max_concurrency=1)
    orchestrator = ResearchOrchestrator(store, engine, identifier, limiter)
    peak = 0

    async def watch():
        nonlocal peak
        for _ in range(20):
            peak = max(peak, limiter.active)
            await asyncio.sleep(0.002)

    await asyncio.gather(
        watch(),
        orchestrator.run_engine('A', None, 'thread'),
        orchestrator.run_engine('B', None, 'thread'),
    )

    assert peak == 1
    assert engine.calls == ['A', 'B']


@pytest.mark.asyncio
async def test_get_thread_research_merges_content(orchestrator, store):
    store.analyses['thread-1'] = ANALYSIS
    topics = await orchestrator.identify(USER, ANALYSIS, 'thread')
    await orchestrator.process(USER, ANALYSIS, topics[0]['id'], 'Vendor lock-in', None, 'thread')

    research = await orchestrator.get_thread_research(USER, 'thread-1')

    assert research[0]['id'] == topics[0]['id']
    assert research[0]['topic'] == 'Vendor lock-in'
    assert research[0]['sections'][0]['kind'] == 'key_points'
    assert research[1]['isLoading'] is True


@pytest.mark.asyncio
async def test_get_thread_research_without_analysis_is_none(orchestrator):
    assert await orchestrator.get_thread_research(USER, 'missing-thread') is None
