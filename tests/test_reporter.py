from alithos.alert_scheduler import AlertDryRun, ConditionCheck
from alithos.alert_templates import get_templates_by_category
from alithos.models import AlertCondition
from alithos.reporter import (
    format_dry_run,
    format_telegram_research,
    format_templates,
    generate_research_report,
)


class TestResearchReport:

    def test_sections(self, research_result):
        report = generate_research_report(research_result)

        assert research_result.market_question in report
        assert f"{research_result.verdict} (confidence" in report
        assert "Posterior probabilities:" in report
        assert "SOURCES (1)" in report
        assert "[1] (A) Fed holds rates, signals cuts ahead" in report
        assert "RESEARCH STRATEGY" in report

    def test_source_limit(self, research_result):
        research_result.graded_sources = research_result.graded_sources * 3
        report = generate_research_report(research_result, max_sources=1)
        assert "... and 2 more" in report

    def test_saved_to_file(self, research_result, tmp_path):
        target = tmp_path / "reports" / "m1.txt"
        report = generate_research_report(research_result, output_file=target)
        assert target.read_text(encoding="utf-8") == report

    def test_telegram_summary(self, research_result):
        text = format_telegram_research(research_result)
        assert text.splitlines()[1].startswith(f"Verdict: {research_result.verdict}")
        assert "A:1 B:0 C:0 D:0" in text


class TestAlertFormatting:

    def test_dry_run(self, make_alert):
        alert = make_alert()
        dry_run = AlertDryRun(would_trigger=False, conditions=[
            ConditionCheck(AlertCondition("price", "gt", 60), 40.0, False, "Price: 40.00 > 60.00"),
        ])

        text = format_dry_run(alert, dry_run)

        assert "Result: would not trigger" in text
        assert "[FAIL] Price: 40.00 > 60.00" in text

    def test_templates(self):
        text = format_templates(get_templates_by_category("liquidity"))
        assert "low-liquidity [liquidity]" in text
        assert "When: depth lt 1000" in text
