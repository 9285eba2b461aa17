"""Tests for the two-phase decision engine."""

import pytest

from adjudicator.analysis.engine import (
    ClaimAnalysisError,
    DecisionEngine,
    declined_summary,
    parse_model_json,
)
from adjudicator.schemas import ApprovedClaimResult, DeclinedClaimResult, TriagedClaim
from conftest import FakeClaude, charges_reply, initial_reply, make_claim


class TestParseModelJson:
    """Test suite for tolerant JSON parsing of model replies."""

    def test_strips_json_fence(self) -> None:
        """Test that a fenced reply parses to its inner object."""
        assert parse_model_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_strips_bare_fence(self) -> None:
        """Test that a fence without a language tag is removed."""
        assert parse_model_json('```\n{"a": 1}\n```') == {"a": 1}

    def test_rejects_non_object(self) -> None:
        """Test that a top-level array is rejected."""
        with pytest.raises(ValueError):
            parse_model_json("[1, 2]")

    def test_rejects_prose(self) -> None:
        """Test that non-JSON text raises a ValueError."""
        with pytest.raises(ValueError):
            parse_model_json("I could not read the documents.")


def test_declined_summary_format() -> None:
    """Test the synthesized summary used when a decline is unexplained."""
    assert declined_summary(["tenant_ledger"], False, True) == (
        "Claim declined. Missing documents: tenant_ledger. "
        "First month rent paid: false. First month SDI premium paid: true."
    )
    assert "Missing documents: None." in declined_summary([], True, True)


class TestAssessInitial:
    """Test suite for the triage phase."""

    @pytest.mark.asyncio
    async def test_declined_short_circuits(self, fake_claude: FakeClaude) -> None:
        """Test that a declined triage is final and gets a synthesized summary."""
        fake_claude.initial["T-1"] = initial_reply("declined", missing=["tenant_ledger"])
        claim = make_claim("T-1", files=2)

        result = await DecisionEngine(fake_claude).assess_initial(claim)

        assert isinstance(result, DeclinedClaimResult)
        assert result.final_payout == 0.0
        assert result.approved_charges == []
        assert result.decision_summary.startswith("Claim declined. Missing documents: tenant_ledger.")
        assert fake_claude.calls == [("initial", "T-1", ["file_T-1_0", "file_T-1_1"])]

    @pytest.mark.asyncio
    async def test_model_summary_kept_on_decline(self, fake_claude: FakeClaude) -> None:
        """Test that an explicit decline summary from the model is used as-is."""
        fake_claude.initial["T-1"] = initial_reply("declined", decision_summary="No ledger.")

        result = await DecisionEngine(fake_claude).assess_initial(make_claim("T-1", files=1))

        assert result.decision_summary == "No ledger."

    @pytest.mark.asyncio
    async def test_identity_and_money_come_from_claim(self, fake_claude: FakeClaude) -> None:
        """Test that tracking number and amounts in the reply are ignored."""
        fake_claude.initial["T-1"] = initial_reply(
            tracking_number="OTHER", max_benefit=99999, monthly_rent=1
        )
        claim = make_claim("T-1", files=1, max_benefit=2500.0, monthly_rent=1200.0)

        result = await DecisionEngine(fake_claude).assess_initial(claim)

        assert isinstance(result, TriagedClaim)
        assert result.tracking_number == "T-1"
        assert result.max_benefit == 2500.0
        assert result.monthly_rent == 1200.0
        assert result.tenant_name == "Jane Doe"

    @pytest.mark.asyncio
    async def test_absent_money_defaults_to_zero(self, fake_claude: FakeClaude) -> None:
        """Test that a claim without max benefit or rent yields zeros."""
        fake_claude.initial["T-1"] = initial_reply()
        claim = make_claim("T-1", files=1, max_benefit=None, monthly_rent=None)

        result = await DecisionEngine(fake_claude).assess_initial(claim)

        assert result.max_benefit == 0.0
        assert result.monthly_rent == 0.0

    @pytest.mark.asyncio
    async def test_no_files_fails_without_calling_model(self, fake_claude: FakeClaude) -> None:
        """Test that a claim without handles is rejected before any model call."""
        with pytest.raises(ClaimAnalysisError) as exc_info:
            await DecisionEngine(fake_claude).assess_initial(make_claim("T-1", documents=2))

        assert exc_info.value.tracking_number == "T-1"
        assert fake_claude.calls == []

    @pytest.mark.asyncio
    async def test_unknown_document_type_rejected(self, fake_claude: FakeClaude) -> None:
        """Test that a document type outside the rule set fails validation."""
        fake_claude.initial["T-1"] = initial_reply(missing=["passport"])

        with pytest.raises(ClaimAnalysisError, match="passport"):
            await DecisionEngine(fake_claude).assess_initial(make_claim("T-1", files=1))

    @pytest.mark.asyncio
    async def test_missing_field_rejected(self, fake_claude: FakeClaude) -> None:
        """Test that a reply without a required field raises ClaimAnalysisError."""
        fake_claude.initial["T-1"] = '{"status": "approved"}'

        with pytest.raises(ClaimAnalysisError):
            await DecisionEngine(fake_claude).assess_initial(make_claim("T-1", files=1))

    @pytest.mark.asyncio
    async def test_unparsable_reply_rejected(self, fake_claude: FakeClaude) -> None:
        """Test that prose instead of JSON raises ClaimAnalysisError."""
        fake_claude.initial["T-1"] = "Sorry, I cannot help with that."

        with pytest.raises(ClaimAnalysisError):
            await DecisionEngine(fake_claude).assess_initial(make_claim("T-1", files=1))

    @pytest.mark.asyncio
    async def test_truncated_reply_logs_warning(self, caplog) -> None:
        """Test that a max_tokens stop is reported."""
        client = FakeClaude(initial={"T-1": initial_reply()}, stop_reason="max_tokens")

        await DecisionEngine(client).assess_initial(make_claim("T-1", files=1))

        assert "truncated" in caplog.text


class TestAssessCharges:
    """Test suite for the charge adjudication phase."""

    async def _triage(self, client: FakeClaude, claim) -> TriagedClaim:
        client.initial[claim.tracking_number] = initial_reply()
        return await DecisionEngine(client).assess_initial(claim)

    @pytest.mark.asyncio
    async def test_payout_under_cap(self, fake_claude: FakeClaude) -> None:
        """Test that the payout equals the approved total when below the cap."""
        claim = make_claim("T-1", files=1, max_benefit=2500.0)
        triaged = await self._triage(fake_claude, claim)
        fake_claude.charges["T-1"] = charges_reply(approved=[100.10, 200.20], excluded=[75.0])

        result = await DecisionEngine(fake_claude).assess_charges(claim, triaged)

        assert isinstance(result, ApprovedClaimResult)
        assert result.approved_charges_total == 300.30
        assert result.final_payout == 300.30
        assert len(result.excluded_charges) == 1
        assert result.decision_summary == "Approved."

    @pytest.mark.asyncio
    async def test_payout_capped_at_max_benefit(self, fake_claude: FakeClaude) -> None:
        """Test that the payout never exceeds the max benefit."""
        claim = make_claim("T-1", files=1, max_benefit=500.0)
        triaged = await self._triage(fake_claude, claim)
        fake_claude.charges["T-1"] = charges_reply(approved=[400.0, 350.0])

        result = await DecisionEngine(fake_claude).assess_charges(claim, triaged)

        assert result.approved_charges_total == 750.0
        assert result.final_payout == 500.0

    @pytest.mark.asyncio
    async def test_no_approved_charges(self, fake_claude: FakeClaude) -> None:
        """Test that an empty approved list gives a zero payout."""
        claim = make_claim("T-1", files=1)
        triaged = await self._triage(fake_claude, claim)
        fake_claude.charges["T-1"] = charges_reply(approved=[], excluded=[50.0])

        result = await DecisionEngine(fake_claude).assess_charges(claim, triaged)

        assert result.approved_charges_total == 0.0
        assert result.final_payout == 0.0

    @pytest.mark.asyncio
    async def test_negative_charge_rejected(self, fake_claude: FakeClaude) -> None:
        """Test that a negative charge amount fails validation."""
        claim = make_claim("T-1", files=1)
        triaged = await self._triage(fake_claude, claim)
        fake_claude.charges["T-1"] = charges_reply(approved=[-10.0])

        with pytest.raises(ClaimAnalysisError):
            await DecisionEngine(fake_claude).assess_charges(claim, triaged)

    @pytest.mark.asyncio
    async def test_empty_summary_rejected(self, fake_claude: FakeClaude) -> None:
        """Test that a charge reply must explain its decision."""
        claim = make_claim("T-1", files=1)
        triaged = await self._triage(fake_claude, claim)
        fake_claude.charges["T-1"] = charges_reply(summary="")

        with pytest.raises(ClaimAnalysisError):
            await DecisionEngine(fake_claude).assess_charges(claim, triaged)

    @pytest.mark.asyncio
    async def test_mismatched_triage_rejected(self, fake_claude: FakeClaude) -> None:
        """Test that a triage result for another claim is refused."""
        triaged = await self._triage(fake_claude, make_claim("T-1", files=1))

        with pytest.raises(ValueError):
            await DecisionEngine(fake_claude).assess_charges(make_claim("T-2", files=1), triaged)

    @pytest.mark.asyncio
    async def test_charges_prompt_carries_triage(self, fake_claude: FakeClaude) -> None:
        """Test that the second call is the charge phase with the same files."""
        claim = make_claim("T-1", files=2)
        triaged = await self._triage(fake_claude, claim)
        fake_claude.charges["T-1"] = charges_reply()

        await DecisionEngine(fake_claude).assess_charges(claim, triaged)

        assert [c[0] for c in fake_claude.calls] == ["initial", "charges"]
        assert fake_claude.calls[1][2] == ["file_T-1_0", "file_T-1_1"]
