"""Export grades and reports to multiple formats (CSV, JSON, TXT, HTML)."""
import csv
import io
import json
from datetime import datetime
from typing import Optional

from shopgrade.rubric import Category, Severity
from shopgrade.seo_grader import SEOGrade
from shopgrade.shop_comparator import ShopComparison
from shopgrade.shop_health import ShopHealthScore

DIMENSIONS = list(Category)


def _top_issue(grade: SEOGrade) -> str:
    return grade.issues[0].issue if grade.issues else ""


def export_csv(results: dict[int, SEOGrade]) -> str:
    """Export listing grades to CSV string."""
    if not results:
        return ""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(
        ["Listing ID", "Grade", "Score"]
        + [c.value.title() for c in DIMENSIONS]
        + ["Issues", "Top Issue"]
    )
    for listing_id, g in results.items():
        writer.writerow(
            [listing_id, g.overall, g.score]
            + [g.breakdown[c].score for c in DIMENSIONS]
            + [len(g.issues), _top_issue(g)]
        )
    return buf.getvalue()


def export_json(results: dict[int, SEOGrade], pretty: bool = True) -> str:
    """Export listing grades to JSON string."""
    clean = [{"listing_id": listing_id, **g.to_dict()} for listing_id, g in results.items()]
    return json.dumps(clean, ensure_ascii=False, indent=2 if pretty else None)


def export_txt(results: dict[int, SEOGrade]) -> str:
    """Export listing grades to plain text."""
    if not results:
        return "No grades."
    lines = ["Etsy SEO Grades - Export", "=" * 40, ""]
    for i, (listing_id, g) in enumerate(results.items(), 1):
        lines.append(f"#{i} Listing {listing_id}: {g.overall} ({g.score}/100)")
        lines.append("   " + " | ".join(
            f"{c.value} {g.breakdown[c].score}" for c in DIMENSIONS
        ))
        for issue in g.issues[:3]:
            lines.append(f"   → {issue.issue}")
        lines.append("")
    return "\n".join(lines)


def export_html(results: dict[int, SEOGrade]) -> str:
    """Export listing grades to a simple HTML table."""
    if not results:
        return "<p>No grades.</p>"
    rows = []
    for listing_id, g in results.items():
        cells = "".join(f"<td>{g.breakdown[c].score}</td>" for c in DIMENSIONS)
        rows.append(
            f"<tr><td>{listing_id}</td>"
            f"<td>{_esc(g.overall)}</td>"
            f"<td>{g.score}</td>"
            f"{cells}"
            f"<td>{_esc(_top_issue(g))}</td></tr>"
        )
    header = "".join(f"<th>{c.value.title()}</th>" for c in DIMENSIONS)
    return (
        "<table border='1' cellpadding='6' cellspacing='0'>"
        f"<tr><th>Listing</th><th>Grade</th><th>Score</th>{header}<th>Top Issue</th></tr>"
        + "".join(rows)
        + "</table>"
    )


EXPORTERS = {
    "csv": export_csv,
    "json": export_json,
    "txt": export_txt,
    "html": export_html,
}


def export_grades(results: dict[int, SEOGrade], fmt: str = "csv") -> Optional[str]:
    """Export grades in the given format. Returns None if format unknown."""
    fn = EXPORTERS.get(fmt.lower())
    if fn is None:
        return None
    return fn(results)


def export_comparison_report(comparison: ShopComparison, generated: Optional[datetime] = None) -> str:
    """Plain-text shop comparison report."""
    r = comparison.percentile_rankings
    generated = generated or datetime.now()
    lines = [
        "Shop Comparison Report",
        "=" * 21,
        "",
        f"Shop: {comparison.shop_name}",
        f"Generated: {generated:%Y-%m-%d}",
        "",
        "PERCENTILE RANKINGS",
        "=" * 19,
        f"Overall Score: {r.overall}th percentile",
        f"Sales: {r.total_sales}th percentile",
        f"Revenue: {r.revenue}th percentile",
        f"Conversion Rate: {r.conversion_rate}th percentile",
        f"SEO Score: {r.seo_score}th percentile",
        "",
        "KEY GAPS IDENTIFIED",
        "=" * 19,
    ]
    if not comparison.gaps:
        lines.append("None")
    for gap in comparison.gaps:
        lines.append("")
        lines.append(f"{gap.metric}: {gap.description}")
        lines.append(f"Gap: {gap.gap:.0f} ({gap.importance.value} priority)")

    lines += ["", "TOP RECOMMENDATIONS", "=" * 19]
    if not comparison.recommendations:
        lines.append("None")
    for rec in comparison.recommendations:
        lines += [
            "",
            f"{rec.title} ({rec.priority.value} priority)",
            rec.description,
            f"Impact: {rec.impact}",
            f"Effort: {rec.effort.value}",
            f"Timeframe: {rec.timeframe}",
            "",
            "Action Steps:",
        ]
        lines += [f"- {step}" for step in rec.action_steps]
    return "\n".join(lines) + "\n"


def export_health_report(score: ShopHealthScore) -> str:
    """Plain-text shop health report."""
    lines = [
        "Shop Health Report",
        "=" * 18,
        "",
        f"Overall Score: {score.overall}/100 ({score.grade})",
        f"Generated: {score.last_updated:%Y-%m-%d}",
        "",
        "BREAKDOWN",
        "=" * 9,
    ]
    lines += [f"{c.value.title()}: {s}/100" for c, s in score.breakdown.items()]

    lines += ["", "CRITICAL ISSUES", "=" * 15]
    critical = [i for i in score.issues if i.severity is Severity.CRITICAL]
    if not critical:
        lines.append("None")
    for issue in critical:
        lines += ["", issue.title, issue.description, f"Impact: {issue.impact}", f"Fix: {issue.fix}"]

    lines += ["", "TOP RECOMMENDATIONS", "=" * 19]
    for rec in score.recommendations[:5]:
        lines += [
            "",
            f"{rec.title} ({rec.priority.value} priority)",
            rec.description,
            f"Expected Impact: {rec.expected_impact}",
            f"Timeframe: {rec.timeframe}",
            f"Effort: {rec.estimated_effort}",
            "",
            "Action Steps:",
        ]
        lines += [f"- {step}" for step in rec.action_steps]

    lines += ["", "QUICK WINS", "=" * 10]
    for win in score.quick_wins:
        lines += ["", win.title, win.description, f"Effort: {win.estimated_effort}",
                  f"Impact: {win.expected_impact}"]
    return "\n".join(lines) + "\n"


def _esc(s: str) -> str:
    """Minimal HTML escape."""
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
