"""
Unit tests for the AI recommendation pipeline.

Providers are scripted FakeProviders or real adapters on a mocked
requests session; no network access.
"""

from unittest.mock import MagicMock

import pytest

from wingetwizard.ai.pipeline import AIRecommendationPipeline, StageProvider
from wingetwizard.ai.prompts import FAILURE_MARKER
from wingetwizard.ai.providers.anthropic import AnthropicProvider
from wingetwizard.ai.providers.perplexity import PerplexityProvider
from wingetwizard.ai.settings import AIServicesSettings
from wingetwizard.credentials import (
    ANTHROPIC_API_KEY,
    AWS_ACCESS_KEY_ID,
    AWS_SECRET_ACCESS_KEY,
    PERPLEXITY_API_KEY,
    InMemoryCredentialStore,
    ProviderKind,
)
from wingetwizard.errors import (
    ProviderAuthError,
    ProviderNetworkError,
    ProviderRateLimited,
    ValidationError,
)
from wingetwizard.models import STATUS_FAILED, STATUS_RESEARCHED, BatchStatus
from wingetwizard.reporting import InMemoryReportWriter
from wingetwizard.store import BackgroundWorker, CancellationToken, InventoryStore

from tests.helpers.fixtures import FakeProvider, make_credential, make_record, make_response


def _pipeline(research=None, primary=None, secondary=None, inventory=None, writer=None):
    research = research or FakeProvider("perplexity", responses=["research facts"])
    chain = [StageProvider(primary or FakeProvider("anthropic", responses=["formatted report"]), 2500)]
    if secondary is not None:
        chain.append(StageProvider(secondary, 4000))
    return AIRecommendationPipeline(
        StageProvider(research, 2000), chain, inventory=inventory, report_writer=writer
    )


class TestRecommend:
    """Tests for a single package."""

    def test_success(self):
        """Test research then format with the primary provider."""
        research = FakeProvider("perplexity", responses=["Git 2.45 fixes CVE-2024-32002"])
        primary = FakeProvider("anthropic", responses=["### Executive Summary\nUpgrade now."])
        pipeline = _pipeline(research, primary)

        outcome = pipeline.recommend(make_record("Git.Git", name="Git"))

        assert outcome.success
        assert outcome.recommendation == "### Executive Summary\nUpgrade now."
        assert outcome.provider_id == "anthropic"
        assert research.calls[0][1] == 2000
        assert "Git.Git" in research.calls[0][0]
        # Stage B sees the Stage A text
        assert "CVE-2024-32002" in primary.calls[0][0]
        assert primary.calls[0][1] == 2500

    def test_primary_failure_falls_back_once(self):
        """Test that a primary error triggers exactly one secondary call."""
        primary = FakeProvider("anthropic", responses=[ProviderAuthError("anthropic", "HTTP 401")])
        secondary = FakeProvider("bedrock", responses=["from bedrock"])
        pipeline = _pipeline(primary=primary, secondary=secondary)

        outcome = pipeline.recommend(make_record())

        assert outcome.success
        assert outcome.recommendation == "from bedrock"
        assert outcome.provider_id == "bedrock"
        assert primary.call_count == 1
        assert secondary.call_count == 1

    def test_both_format_providers_fail(self):
        """Test that a double failure yields the failure marker without raising."""
        primary = FakeProvider("anthropic", responses=[ProviderAuthError("anthropic", "HTTP 401")])
        secondary = FakeProvider("bedrock", responses=[ProviderRateLimited("bedrock", "HTTP 429")])
        pipeline = _pipeline(primary=primary, secondary=secondary)

        outcome = pipeline.recommend(make_record())

        assert not outcome.success
        assert outcome.recommendation == FAILURE_MARKER
        assert secondary.call_count == 1
        assert "anthropic: auth" in outcome.error
        assert "bedrock: rate_limited" in outcome.error

    def test_research_failure_skips_format(self):
        """Test that a research failure skips Stage B."""
        research = FakeProvider("perplexity", responses=[ProviderNetworkError("perplexity", "down")])
        primary = FakeProvider("anthropic")
        secondary = FakeProvider("bedrock")
        pipeline = _pipeline(research, primary, secondary)

        outcome = pipeline.recommend(make_record())

        assert not outcome.success
        assert outcome.recommendation == FAILURE_MARKER
        assert outcome.error.startswith("Research failed")
        assert primary.call_count == 0
        assert secondary.call_count == 0

    def test_progress_twice_per_item(self):
        """Test progress messages before each stage."""
        messages = []
        _pipeline().recommend(make_record("Git.Git", name="Git"), progress=messages.append, position="(1/3)")
        assert messages == ["Researching Git (1/3)...", "Formatting report for Git (1/3)..."]

    def test_requires_format_provider(self):
        """Test that an empty format chain is rejected."""
        with pytest.raises(ValidationError):
            AIRecommendationPipeline(StageProvider(FakeProvider(), 100), [])


class TestRun:
    """Tests for batches."""

    def test_one_failure_does_not_abort_batch(self):
        """Test A, B, C where research for B fails."""
        def research(prompt):
            if "B.B" in prompt:
                raise ProviderNetworkError("perplexity", "timeout")
            return "facts"

        pipeline = _pipeline(research=FakeProvider("perplexity", responder=research))
        records = [make_record("A.A"), make_record("B.B"), make_record("C.C")]

        result = pipeline.run(records)

        assert [r.recommendation for r in records] == [
            "formatted report", FAILURE_MARKER, "formatted report",
        ]
        assert [i.success for i in result.items] == [True, False, True]
        assert result.status == BatchStatus.PARTIAL
        assert result.succeeded == 2
        assert result.failed == 1

    def test_progress_count(self):
        """Test two progress reports per item."""
        messages = []
        _pipeline().run([make_record("A.A"), make_record("B.B"), make_record("C.C")], progress=messages.append)
        assert len(messages) == 6

    def test_report_written_once_after_batch(self):
        """Test that the writer receives all pairs once, after the last item."""
        writer = InMemoryReportWriter()

        def research(prompt):
            # Nothing may be written while the batch is running
            assert writer.batches == []
            return "facts"

        pipeline = _pipeline(research=FakeProvider("perplexity", responder=research), writer=writer)
        pipeline.run([make_record("A.A"), make_record("B.B")])

        assert len(writer.batches) == 1
        assert [(r.id, text) for r, text in writer.last] == [
            ("A.A", "formatted report"), ("B.B", "formatted report"),
        ]

    def test_inventory_updates(self):
        """Test that statuses and recommendations reach the inventory."""
        inventory = InventoryStore()
        inventory.replace([make_record("A.A"), make_record("B.B")])
        research = FakeProvider(
            "perplexity", responder=lambda p: "facts" if "A.A" in p else ProviderAuthError("perplexity", "401")
        )
        pipeline = _pipeline(research=research, inventory=inventory)

        pipeline.run(inventory.snapshot())

        assert inventory.get("A.A").recommendation == "formatted report"
        assert inventory.get("A.A").status == STATUS_RESEARCHED
        assert inventory.get("B.B").recommendation == FAILURE_MARKER
        assert inventory.get("B.B").status == STATUS_FAILED

    def test_cancellation(self):
        """Test that remaining items are cancelled and completed pairs are kept."""
        token = CancellationToken()
        writer = InMemoryReportWriter()

        def research(prompt):
            token.cancel()
            return "facts"

        pipeline = _pipeline(research=FakeProvider("perplexity", responder=research), writer=writer)
        result = pipeline.run(
            [make_record("A.A"), make_record("B.B"), make_record("C.C")], cancel=token
        )

        assert [i.cancelled for i in result.items] == [False, True, True]
        assert result.cancelled == 2
        assert [r.id for r, _ in writer.last] == ["A.A"]

    def test_empty_batch(self):
        """Test that an empty batch writes nothing."""
        writer = InMemoryReportWriter()
        result = _pipeline(writer=writer).run([])
        assert result.status == BatchStatus.EMPTY
        assert writer.batches == []

    def test_submit_runs_on_worker(self):
        """Test background execution through BackgroundWorker."""
        with BackgroundWorker() as worker:
            future = _pipeline().submit(worker, [make_record("A.A")])
            result = future.result(timeout=5)
        assert result.succeeded == 1


class TestFromSettings:
    """Tests for pipeline construction from settings."""

    def _store(self):
        return InMemoryCredentialStore({
            PERPLEXITY_API_KEY: "pplx-" + "p" * 45,
            ANTHROPIC_API_KEY: "sk-ant-" + "a" * 60,
            AWS_ACCESS_KEY_ID: "AKIA" + "X" * 16,
            AWS_SECRET_ACCESS_KEY: "s" * 40,
        })

    def test_roles(self):
        """Test that roles and token budgets follow the settings."""
        settings = AIServicesSettings.get_defaults()
        pipeline = AIRecommendationPipeline.from_settings(settings, self._store())

        assert pipeline.research.provider_id == "perplexity"
        assert pipeline.research.max_tokens == 2000
        assert [s.provider_id for s in pipeline.format_chain] == ["anthropic", "bedrock"]
        assert [s.max_tokens for s in pipeline.format_chain] == [2500, 4000]

    def test_bedrock_default_region(self):
        """Test that Bedrock gets the configured region when the store has none."""
        settings = AIServicesSettings.get_defaults()
        settings.aws_region = "eu-central-1"
        pipeline = AIRecommendationPipeline.from_settings(settings, self._store())

        assert pipeline.format_chain[1].provider.credential.region == "eu-central-1"

    def test_roles_fixed_after_construction(self):
        """Test that later settings changes do not affect an existing pipeline."""
        settings = AIServicesSettings.get_defaults()
        pipeline = AIRecommendationPipeline.from_settings(settings, self._store())

        settings.primary_provider = "bedrock"
        settings.secondary_provider = "anthropic"

        assert [s.provider_id for s in pipeline.format_chain] == ["anthropic", "bedrock"]

    def test_same_primary_and_secondary(self):
        """Test that a duplicate secondary does not double the chain."""
        settings = AIServicesSettings.get_defaults()
        settings.secondary_provider = "anthropic"
        pipeline = AIRecommendationPipeline.from_settings(settings, self._store())
        assert [s.provider_id for s in pipeline.format_chain] == ["anthropic"]

    def test_unknown_provider(self):
        """Test that an unknown provider id is rejected."""
        settings = AIServicesSettings.get_defaults()
        settings.primary_provider = "nonexistent"
        with pytest.raises(ValidationError):
            AIRecommendationPipeline.from_settings(settings, self._store())


class TestMalformedProviderResponses:
    """Tests for real adapters returning well-formed HTTP with bad content."""

    def test_null_text_block_falls_back_to_secondary(self):
        """Test that a null text block from the primary triggers the secondary."""
        session = MagicMock()
        session.request.return_value = make_response(200, {"content": [{"type": "text", "text": None}]})
        primary = AnthropicProvider(make_credential(ProviderKind.ANTHROPIC), session=session)
        secondary = FakeProvider("bedrock", responses=["ok"])
        writer = InMemoryReportWriter()
        pipeline = _pipeline(primary=primary, secondary=secondary, writer=writer)

        result = pipeline.run([make_record("A.A"), make_record("B.B")])

        assert [i.success for i in result.items] == [True, True]
        assert secondary.call_count == 2
        assert [text for _, text in writer.last] == ["ok", "ok"]

    def test_non_string_research_content_marks_item_failed(self):
        """Test that numeric research content fails the item without aborting the batch."""
        session = MagicMock()
        session.request.side_effect = [
            make_response(200, {"choices": [{"message": {"content": 123}}]}),
            make_response(200, {"choices": [{"message": {"content": "facts"}}]}),
        ]
        research = PerplexityProvider(make_credential(ProviderKind.PERPLEXITY), session=session)
        primary = FakeProvider("anthropic", responses=["formatted report"])
        records = [make_record("A.A"), make_record("B.B")]

        result = _pipeline(research=research, primary=primary).run(records)

        assert [r.recommendation for r in records] == [FAILURE_MARKER, "formatted report"]
        assert result.status == BatchStatus.PARTIAL
        assert primary.call_count == 1
