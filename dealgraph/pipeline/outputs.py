"""
Output Generation

Generates CSV, Markdown, and JSON reports from the relationship graph.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import pandas as pd

from dealgraph.models.deal_health import AnalysisReport
from dealgraph.models.entities import Account
from dealgraph.models.queries import OrgChartEntry

if TYPE_CHECKING:
    from dealgraph.graph import RelationshipGraph

logger = logging.getLogger(__name__)


class OutputGenerator:
    """Generates various output formats from graph data."""

    def __init__(
        self,
        output_dir: str | Path = "./outputs",
        formats: Optional[list[str]] = None,
        timestamp_filenames: bool = True,
        max_items_per_section: int = 20,
        include_methodology: bool = True,
    ):
        """Initialize output generator.

        Args:
            output_dir: Directory for output files
            formats: List of formats to generate (csv, markdown, json)
            timestamp_filenames: Whether to include timestamp in filenames
            max_items_per_section: Maximum items per report section
            include_methodology: Whether to include methodology in reports
        """
        self.output_dir = Path(output_dir)
        self.formats = formats or ["csv", "markdown", "json"]
        self.timestamp_filenames = timestamp_filenames
        self.max_items_per_section = max_items_per_section
        self.include_methodology = include_methodology

        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _get_filename(self, base_name: str, extension: str) -> Path:
        """Generate output filename."""
        if self.timestamp_filenames:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"{base_name}_{timestamp}.{extension}"
        else:
            filename = f"{base_name}.{extension}"
        return self.output_dir / filename

    def _influence_rows(self, graph: "RelationshipGraph") -> list[dict]:
        rows = []
        for contact in graph.get_top_contacts(n=len(graph.store)):
            breakdown = graph.scorer.breakdown(graph.store, contact.id)
            account = graph.store.find_node(contact.company_ref) if contact.company_ref else None
            rows.append({
                "id": contact.id,
                "name": contact.name,
                "title": contact.title,
                "account": account.name if isinstance(account, Account) else contact.company,
                "role": contact.role.value,
                "influence_score": contact.influence_score,
                **{f"{k}_points": v for k, v in breakdown.items()},
                "interaction_count": contact.interaction_count,
                "last_interaction": contact.last_interaction.isoformat() if contact.last_interaction else "",
            })
        return rows

    def _generate_influence_md(self, graph: "RelationshipGraph", rows: list[dict]) -> str:
        """Generate influence markdown report."""
        lines = ["# Contact Influence Report\n"]

        if self.include_methodology:
            scorer = graph.scorer
            lines.extend([
                "## Methodology\n",
                "Influence is the sum of five capped components (0-100):\n",
                f"- **Role**: title seniority, up to {max(p for _, p in scorer.role_scores)} points",
                f"- **Deal involvement**: {scorer.deal_points:g} per deal role, max {scorer.deal_cap:g}",
                f"- **Relationship strength**: {scorer.strong_edge_points:g} per tie at "
                f"{scorer.strong_edge_threshold:g}+ strength, max {scorer.strong_edge_cap:g}",
                f"- **Interaction recency**: {scorer.recency_points:g} per interaction in the last "
                f"{scorer.recency_window_days} days, max {scorer.recency_cap:g}",
                f"- **Network centrality**: {scorer.centrality_points:g} per relationship, "
                f"max {scorer.centrality_cap:g}\n",
            ])

        stats = graph.get_stats()
        lines.extend([
            f"*Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}*\n",
            f"*Contacts: {stats['nodes'].get('contact', 0)}, "
            f"accounts: {stats['nodes'].get('account', 0)}, "
            f"deals: {stats['nodes'].get('deal', 0)}*\n",
            "\n## Most Influential Contacts\n",
            "| Rank | Name | Title | Account | Role | Influence |",
            "|------|------|-------|---------|------|-----------|",
        ])

        for i, row in enumerate(rows[:self.max_items_per_section], 1):
            lines.append(
                f"| {i} | {row['name']} | {row['title'] or '-'} | "
                f"{row['account'] or 'Unknown'} | {row['role']} | {row['influence_score']} |"
            )

        deals = [d for d in graph.store.deals() if not d.is_closed]
        recommendations = [(d, graph.get_influence_recommendations(d.id)) for d in deals]
        recommendations = [(d, recs) for d, recs in recommendations if recs]
        if recommendations:
            lines.append("\n## Coverage Gaps\n")
            for deal, recs in recommendations:
                lines.append(f"### {deal.name}\n")
                for rec in recs:
                    lines.append(f"- **{rec.contact.name}** ({rec.priority}): {rec.reason}")
                lines.append("")

        return "\n".join(lines)

    def _generate_deal_health_md(self, report: AnalysisReport) -> str:
        """Generate deal health markdown report."""
        lines = [
            "# Deal Health Report\n",
            f"*Generated: {report.generated_at.strftime('%Y-%m-%d %H:%M')}*\n",
            "\n## Hot Leads\n",
        ]

        if report.hot_leads:
            lines.extend([
                "| Deal | Signal | Urgency |",
                "|------|--------|---------|",
            ])
            for lead in report.hot_leads:
                lines.append(f"| {lead.lead_name} | {lead.signal_reason} | {lead.urgency_score}/10 |")
        else:
            lines.append("No deals with recent momentum.")

        lines.append("\n## Risks\n")
        if report.risks:
            lines.extend([
                "| Deal | Value | Issue | Suggested Fix |",
                "|------|-------|-------|---------------|",
            ])
            for risk in report.risks:
                lines.append(
                    f"| {risk.deal_name} | ${risk.deal_value:,.0f} | {risk.issue} | {risk.suggested_fix} |"
                )
        else:
            lines.append("No stalled or ghosted deals.")

        lines.append("\n## Smart Actions\n")
        if report.smart_actions:
            for action in report.smart_actions:
                lines.extend([
                    f"### {action.action_type}: {action.target_name}\n",
                    f"{action.rationale}\n",
                    "```",
                    action.draft_content,
                    "```\n",
                ])
        else:
            lines.append("Nothing to do right now.")

        return "\n".join(lines)

    def _generate_org_chart_md(self, account_name: str, chart: dict[str, OrgChartEntry]) -> str:
        """Generate org chart markdown as an indented tree."""
        lines = [f"# Org Chart: {account_name}\n"]

        def walk(contact_id: str, depth: int, seen: set[str]) -> None:
            entry = chart[contact_id]
            flag = " (reporting cycle)" if entry.in_cycle else ""
            lines.append(
                f"{'  ' * depth}- **{entry.contact.name}**, "
                f"{entry.contact.title or 'Unknown title'} "
                f"(influence {entry.contact.influence_score}){flag}"
            )
            seen.add(contact_id)
            for report_id in entry.manages:
                if report_id not in seen:
                    walk(report_id, depth + 1, seen)

        seen: set[str] = set()
        roots = [cid for cid, e in chart.items() if e.reports_to is None or e.in_cycle]
        for root in roots:
            if root not in seen:
                walk(root, 0, seen)

        return "\n".join(lines)

    def generate_influence_report(self, graph: "RelationshipGraph") -> dict[str, Path]:
        """Generate contact influence reports."""
        generated = {}
        rows = self._influence_rows(graph)

        if "csv" in self.formats:
            filepath = self._get_filename("contact_influence", "csv")
            pd.DataFrame(rows).to_csv(filepath, index=False)
            generated["csv"] = filepath

        if "markdown" in self.formats:
            md_content = self._generate_influence_md(graph, rows)
            filepath = self._get_filename("contact_influence", "md")
            filepath.write_text(md_content)
            generated["markdown"] = filepath

        if "json" in self.formats:
            json_data = {
                "generated_at": datetime.now().isoformat(),
                "stats": graph.get_stats(),
                "contacts": rows,
            }
            filepath = self._get_filename("contact_influence", "json")
            filepath.write_text(json.dumps(json_data, indent=2, default=str))
            generated["json"] = filepath

        logger.info(f"Generated influence reports: {list(generated.keys())}")
        return generated

    def generate_deal_health_report(self, report: AnalysisReport) -> dict[str, Path]:
        """Generate deal health reports."""
        generated = {}

        if "csv" in self.formats:
            filepath = self._get_filename("deal_risks", "csv")
            pd.DataFrame(
                [r.model_dump() for r in report.risks],
                columns=["deal_id", "deal_name", "deal_value", "issue", "suggested_fix"],
            ).to_csv(filepath, index=False)
            generated["csv"] = filepath

        if "markdown" in self.formats:
            md_content = self._generate_deal_health_md(report)
            filepath = self._get_filename("deal_health", "md")
            filepath.write_text(md_content)
            generated["markdown"] = filepath

        if "json" in self.formats:
            filepath = self._get_filename("deal_health", "json")
            filepath.write_text(report.model_dump_json(indent=2))
            generated["json"] = filepath

        logger.info(f"Generated deal health reports: {list(generated.keys())}")
        return generated

    def generate_org_chart(self, graph: "RelationshipGraph", account_id: str) -> dict[str, Path]:
        """Generate org chart reports for one account."""
        generated = {}
        account = graph.store.find_node(account_id)
        account_name = account.name if account else account_id
        chart = graph.get_org_chart(account_id)

        safe_name = "".join(c if c.isalnum() else "_" for c in account_name.lower())

        if "markdown" in self.formats:
            filepath = self._get_filename(f"org_chart_{safe_name}", "md")
            filepath.write_text(self._generate_org_chart_md(account_name, chart))
            generated["markdown"] = filepath

        if "json" in self.formats:
            json_data = {
                "account_id": account_id,
                "account_name": account_name,
                "contacts": [
                    {
                        "id": entry.contact.id,
                        "name": entry.contact.name,
                        "title": entry.contact.title,
                        "level": entry.level,
                        "reports_to": entry.reports_to,
                        "manages": entry.manages,
                        "in_cycle": entry.in_cycle,
                    }
                    for entry in sorted(chart.values(), key=lambda e: (e.level, e.contact.name))
                ],
            }
            filepath = self._get_filename(f"org_chart_{safe_name}", "json")
            filepath.write_text(json.dumps(json_data, indent=2))
            generated["json"] = filepath

        logger.info(f"Generated org chart for {account_name}: {list(generated.keys())}")
        return generated


def generate_outputs(
    graph: "RelationshipGraph",
    report: Optional[AnalysisReport] = None,
    output_dir: str | Path = "./outputs",
    formats: Optional[list[str]] = None,
) -> dict[str, dict[str, Path]]:
    """Convenience function to generate all outputs.

    Args:
        graph: Populated relationship graph
        report: Deal health analysis (computed when not given)
        output_dir: Output directory
        formats: Formats to generate

    Returns:
        Dictionary of report_type -> format -> filepath
    """
    generator = OutputGenerator(
        output_dir=output_dir,
        formats=formats or ["csv", "markdown", "json"],
    )

    results = {
        "contact_influence": generator.generate_influence_report(graph),
        "deal_health": generator.generate_deal_health_report(report or graph.analyze_deals()),
    }

    for account in graph.store.accounts():
        results[f"org_chart_{account.id}"] = generator.generate_org_chart(graph, account.id)

    return results
