from __future__ import annotations

from collections import Counter
from typing import Sequence

from domain.tax_event import HoldingPeriod
from domain.tax_report import AssetSummary, Form8949Bucket, TaxReport
from utils.formatting import format_date, format_decimal, format_usd


def render_tax_report(report: TaxReport) -> None:
    print(f"Tax report {report.year} ({report.method}):")
    print(f"  Short-term gain/loss: {format_usd(report.short_term_gains_usd)}")
    print(f"  Long-term gain/loss:  {format_usd(report.long_term_gains_usd)}")
    print(f"  Net capital gain:     {format_usd(report.net_capital_gain_usd)}")
    if report.deductible_loss_usd > 0:
        print(f"  Deductible loss:      {format_usd(report.deductible_loss_usd)}")
        print(f"  Loss carryover:       {format_usd(report.loss_carryover_usd)}")
    print(f"  Ordinary income:      {format_usd(report.total_income_usd)}")
    print(f"  Taxable events: {report.taxable_event_count}  Income events: {report.income_event_count}")
    if report.skipped_transaction_count or report.duplicates_dropped:
        print(
            f"  Skipped malformed: {report.skipped_transaction_count}  "
            f"Duplicates dropped: {report.duplicates_dropped}"
        )

    render_asset_summaries(report.asset_summaries)
    for bucket in report.form_8949:
        render_form_8949_bucket(bucket)

    if report.anomalies:
        counts = Counter(anomaly.kind.value for anomaly in report.anomalies)
        print("Anomalies:")
        for kind, count in sorted(counts.items()):
            print(f"  {kind}: {count}")


def render_asset_summaries(summaries: Sequence[AssetSummary]) -> None:
    print("Gains by asset (USD):")
    if not summaries:
        print("  (no taxable events)")
        return

    asset_width = max(len("Asset"), max(len(row.asset) for row in summaries))
    term_width = max(len("Term"), max(len(row.holding_period.value) for row in summaries))
    amount_width = max(len("Amount"), max(len(format_decimal(row.amount)) for row in summaries))
    proceeds_width = max(len("Proceeds"), max(len(format_usd(row.proceeds_usd)) for row in summaries))
    cost_width = max(len("Cost basis"), max(len(format_usd(row.cost_basis_usd)) for row in summaries))
    gain_width = max(len("Gain/loss"), max(len(format_usd(row.gain_loss_usd)) for row in summaries))

    header = (
        f"{'Asset':<{asset_width}} "
        f"{'Term':<{term_width}} "
        f"{'Amount':>{amount_width}} "
        f"{'Proceeds':>{proceeds_width}} "
        f"{'Cost basis':>{cost_width}} "
        f"{'Gain/loss':>{gain_width}}"
    )
    lines = [header, "-" * len(header)]
    for row in summaries:
        lines.append(
            f"{row.asset:<{asset_width}} "
            f"{row.holding_period.value:<{term_width}} "
            f"{format_decimal(row.amount):>{amount_width}} "
            f"{format_usd(row.proceeds_usd):>{proceeds_width}} "
            f"{format_usd(row.cost_basis_usd):>{cost_width}} "
            f"{format_usd(row.gain_loss_usd):>{gain_width}}"
        )

    print("\n".join(lines))


def render_form_8949_bucket(bucket: Form8949Bucket) -> None:
    part = "Part I" if bucket.holding_period == HoldingPeriod.SHORT_TERM else "Part II"
    print(f"Form 8949 {part}, box {bucket.box.value} ({len(bucket.rows)} rows):")

    description_width = max(len("Description"), max(len(row.description) for row in bucket.rows))
    header = (
        f"{'Description':<{description_width}} "
        f"{'Acquired':<10} "
        f"{'Sold':<10} "
        f"{'Proceeds':>14} "
        f"{'Cost basis':>14} "
        f"{'Gain/loss':>14}"
    )
    lines = [header, "-" * len(header)]
    for row in bucket.rows:
        lines.append(
            f"{row.description:<{description_width}} "
            f"{format_date(row.date_acquired):<10} "
            f"{format_date(row.date_sold):<10} "
            f"{format_usd(row.proceeds_usd):>14} "
            f"{format_usd(row.cost_basis_usd):>14} "
            f"{format_usd(row.gain_loss_usd):>14}"
        )
    lines.append(
        f"{'Totals':<{description_width}} "
        f"{'':<10} "
        f"{'':<10} "
        f"{format_usd(bucket.proceeds_usd):>14} "
        f"{format_usd(bucket.cost_basis_usd):>14} "
        f"{format_usd(bucket.gain_loss_usd):>14}"
    )
    print("\n".join(lines))
