"""
Reporter module for readable output of research results and alerts.

This module formats research verdicts, alert dry runs, alert templates and
scheduler status as plain text for the console, plus a condensed research
summary for Telegram.
"""

import logging
from pathlib import Path
from typing import Optional

from alithos.alert_scheduler import AlertDryRun
from alithos.alert_templates import AlertTemplate
from alithos.models import Alert, MarketResearchResult
from alithos.utils import utc_now

# Configure module logger
logger = logging.getLogger(__name__)

RULE = "=" * 80
DIVIDER = "-" * 80
MAX_SOURCES_IN_REPORT = 10


def generate_research_report(
    result: MarketResearchResult,
    output_file: Optional[Path] = None,
    max_sources: int = MAX_SOURCES_IN_REPORT
) -> str:
    """
    Generate a formatted report of one research run.

    Args:
        result: Research result to render
        output_file: Optional path to save report to file
        max_sources: Maximum number of graded sources to list

    Returns:
        Formatted report string
    """
    sections = [
        _generate_header(result),
        _generate_verdict_section(result),
        _generate_analysis_section(result),
        _generate_sources_section(result, max_sources),
        _generate_strategy_section(result),
    ]
    report = "\n\n".join(sections)

    if output_file:
        _save_report_to_file(report, output_file)

    return report


def _generate_header(result: MarketResearchResult) -> str:
    now = utc_now().strftime("%Y-%m-%d %H:%M:%S UTC")

    header = f"""
{RULE}
  ALITHOS TERMINAL - MARKET RESEARCH
{RULE}
Market: {result.market_question}
Market ID: {result.market_id}
Researched: {result.timestamp}
Generated: {now}
{RULE}
"""
    return header.strip()


def _generate_verdict_section(result: MarketResearchResult) -> str:
    probs = result.bayesian_result.probabilities
    evidence = result.bayesian_result.weighted_evidence

    lines = [
        "VERDICT",
        DIVIDER,
        f"  {result.verdict} (confidence {result.confidence:.1%})",
        "",
        "  Posterior probabilities:",
        f"    YES:       {probs.yes:.1%}",
        f"    NO:        {probs.no:.1%}",
        f"    UNCERTAIN: {probs.uncertain:.1%}",
        "",
        "  Weighted evidence:",
        f"    A: {evidence.grade_a_weight:.1%} | B: {evidence.grade_b_weight:.1%} | "
        f"C: {evidence.grade_c_weight:.1%} | D: {evidence.grade_d_weight:.1%}",
        "",
        f"  {result.bayesian_result.explanation}",
    ]
    return "\n".join(lines)


def _generate_analysis_section(result: MarketResearchResult) -> str:
    analysis = result.analysis_result
    lines = ["AGENT ANALYSIS", DIVIDER]

    for agent in (analysis.analyst, analysis.critic, analysis.aggregator):
        lines.append(f"  {agent.agent_name}: confidence {agent.confidence:.2f}")
        lines.append(f"    {agent.reasoning}")

    lines.append(f"  Overall agent confidence: {analysis.overall_confidence:.2f}")
    return "\n".join(lines)


def _generate_sources_section(result: MarketResearchResult, max_sources: int) -> str:
    graded = result.graded_sources
    if not graded:
        return "No sources."

    lines = [f"SOURCES ({len(graded)})", DIVIDER]
    for idx, gs in enumerate(graded[:max_sources], 1):
        lines.append(f"[{idx}] ({gs.grade}) {gs.source.title}")
        lines.append(f"    {gs.source.url}")
        lines.append(f"    {gs.explanation}")

    if len(graded) > max_sources:
        lines.append(f"... and {len(graded) - max_sources} more")

    return "\n".join(lines)


def _generate_strategy_section(result: MarketResearchResult) -> str:
    strategy = result.research_strategy
    lines = ["RESEARCH STRATEGY", DIVIDER, f"  {strategy.timeline_considerations}", "", "  Queries:"]
    lines += [f"    - {q}" for q in strategy.search_queries]
    lines += ["", "  Important factors:"]
    lines += [f"    - {f}" for f in strategy.important_factors]
    return "\n".join(lines)


def _save_report_to_file(report: str, file_path: Path) -> None:
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(report, encoding='utf-8')
        logger.info(f"Report saved to {file_path}")
    except Exception as e:
        logger.error(f"Error saving report to {file_path}: {e}", exc_info=True)


def format_dry_run(alert: Alert, dry_run: AlertDryRun) -> str:
    """Render an alert dry run, one line per condition."""
    status = "WOULD TRIGGER" if dry_run.would_trigger else "would not trigger"
    lines = [
        f"Alert: {alert.name} ({alert.id})",
        f"Market: {alert.market_id or 'Global'}",
        f"Result: {status}",
        "",
    ]

    for check in dry_run.conditions:
        mark = "PASS" if check.passed else "FAIL"
        lines.append(f"  [{mark}] {check.description}")

    if not dry_run.conditions:
        lines.append("  (no conditions)")

    return "\n".join(lines)


def format_templates(templates: list[AlertTemplate]) -> str:
    lines = ["ALERT TEMPLATES", DIVIDER]
    for template in templates:
        conditions = " AND ".join(
            f"{c.type} {c.operator} {c.value:g}" for c in template.conditions
        )
        cooldown = template.default_cooldown_minutes
        lines.append(f"{template.id} [{template.category}]")
        lines.append(f"    {template.name}: {template.description}")
        lines.append(f"    When: {conditions} | Cooldown: {cooldown if cooldown is not None else 'none'} min")
    return "\n".join(lines)


def format_status(alerts: list[Alert], history: list[dict]) -> str:
    active = sum(1 for a in alerts if a.is_active)
    lines = [
        "ALERT ENGINE STATUS",
        DIVIDER,
        f"Stored alerts: {len(alerts)} ({active} active)",
    ]

    for alert in alerts:
        state = "active" if alert.is_active else "paused"
        last = alert.last_triggered.strftime("%Y-%m-%d %H:%M:%S UTC") if alert.last_triggered else "never"
        lines.append(f"  {alert.id}  {alert.name} [{state}] last triggered: {last}")

    if history:
        lines += ["", "Recent triggers:"]
        for entry in history:
            triggered = entry.get("triggered_at")
            when = triggered.strftime("%Y-%m-%d %H:%M:%S UTC") if triggered else "unknown"
            lines.append(f"  {when}  {entry.get('alert_name') or entry.get('alert_id')}")

    return "\n".join(lines)


def format_telegram_research(result: MarketResearchResult) -> str:
    """
    Condensed research summary suitable for a Telegram message.
    """
    probs = result.bayesian_result.probabilities
    grades = {g: sum(1 for s in result.graded_sources if s.grade == g) for g in ("A", "B", "C", "D")}

    lines = [
        f"Market research: {result.market_question[:80]}",
        f"Verdict: {result.verdict} ({result.confidence:.0%} confidence)",
        f"YES {probs.yes:.0%} | NO {probs.no:.0%} | UNCERTAIN {probs.uncertain:.0%}",
        f"Sources: {len(result.graded_sources)} "
        f"(A:{grades['A']} B:{grades['B']} C:{grades['C']} D:{grades['D']})",
    ]
    return "\n".join(lines)
