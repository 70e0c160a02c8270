"""CLI tool for shopgrade.

Usage:
    python -m shopgrade.cli grade --file listing.json [--json] [--save]
    python -m shopgrade.cli grade --listing-id 123 (--data shop.json | --etsy)
    python -m shopgrade.cli bulk --file listings.csv [--output grades.csv] [--max 50]
    python -m shopgrade.cli compare --shop SilverNest --category jewelry [--competitor X ...] [--report]
    python -m shopgrade.cli health --file health.json --shop SilverNest [--report]
    python -m shopgrade.cli price --price 20 --category jewelry [--keywords "ring,silver"] [--cost 8 --margin 40]
    python -m shopgrade.cli psych --price 20
    python -m shopgrade.cli benchmarks [--category jewelry]
"""
import argparse
import json
import logging
import sys

from shopgrade.errors import DataUnavailableError
from shopgrade.log import setup_logging

logger = logging.getLogger(__name__)


def cmd_grade(args):
    """Grade one listing."""
    from shopgrade.history import GradeHistoryStore
    from shopgrade.seo_grader import ListingData, SEOGrader
    from shopgrade.config import config

    if args.file:
        with open(args.file, encoding="utf-8") as f:
            listing = ListingData.from_dict(json.load(f))
    elif args.listing_id:
        listing = _provider(args).get_listing(args.listing_id)
    else:
        print("❌ No input. Use --file or --listing-id")
        sys.exit(1)

    history = GradeHistoryStore(config.REDIS_URL, config.MAX_HISTORY) if args.save else None
    grader = SEOGrader(history=history)
    grade = grader.grade_listing(listing)

    if args.json:
        print(json.dumps(grade.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(grade.summary())

    if args.save and grader.save_grade_to_history(listing.listing_id, grade):
        print(f"\n💾 Saved grade for listing {listing.listing_id}")


def cmd_bulk(args):
    """Grade a bulk file of listings."""
    from shopgrade.bulk import parse_input, process_bulk
    from shopgrade.export import export_grades
    from shopgrade.seo_grader import SEOGrader

    with open(args.file, encoding="utf-8") as f:
        content = f.read()

    listings = parse_input(content)
    print(f"📦 Parsed {len(listings)} listings")

    def on_progress(current, total, listing_id):
        print(f"  [{current}/{total}] {listing_id}")

    result = process_bulk(listings, SEOGrader(), on_progress, max_items=args.max)
    print()
    print(result.summary())

    if args.output:
        fmt = args.output.rsplit(".", 1)[-1] if "." in args.output else "csv"
        data = export_grades(result.grades, fmt)
        if data is None:
            print(f"❌ Unknown export format: {fmt}")
            sys.exit(1)
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(data)
        print(f"💾 Saved to {args.output}")


def cmd_compare(args):
    """Compare a shop against benchmarks and competitors."""
    from shopgrade.export import export_comparison_report
    from shopgrade.shop_comparator import ShopComparator

    comparator = ShopComparator(_provider(args))
    comparison = comparator.compare_shop(args.shop, args.category, args.competitor or [])
    if comparison is None:
        print(f"❌ Could not load shop data for {args.shop}")
        sys.exit(1)

    if args.report:
        print(export_comparison_report(comparison))
        return

    r = comparison.percentile_rankings
    print(f"🏪 {comparison.shop_name} vs {args.category}")
    print(f"   Overall: {r.overall}th percentile")
    print(f"   Sales {r.total_sales} | Revenue {r.revenue} | Conversion {r.conversion_rate} "
          f"| Rating {r.average_rating} | SEO {r.seo_score}")
    for gap in comparison.gaps:
        print(f"  ⚠️ {gap.description}")
    for rec in comparison.recommendations:
        print(f"  💡 [{rec.priority.value}] {rec.title} ({rec.timeframe})")


def cmd_health(args):
    """Score shop health from a JSON file with listings and shop metrics."""
    from shopgrade.export import export_health_report
    from shopgrade.seo_grader import ListingData
    from shopgrade.shop_health import ShopHealthMetrics, ShopHealthMonitor

    with open(args.file, encoding="utf-8") as f:
        data = json.load(f)

    listings = [ListingData.from_dict(d) for d in data.get("listings") or []]
    metrics = ShopHealthMetrics.from_dict(data.get("metrics") or {})
    score = ShopHealthMonitor().calculate_shop_health(args.shop, listings, metrics)

    print(export_health_report(score) if args.report else score.summary())


def cmd_price(args):
    """Recommend a price for a listing."""
    from shopgrade.config import config
    from shopgrade.smart_pricing import SmartPricingEngine

    keywords = [k.strip() for k in args.keywords.split(",")] if args.keywords else []
    engine = SmartPricingEngine(_provider(args), cache_ttl=config.PRICE_CACHE_TTL)
    rec = engine.get_pricing_recommendation(
        args.listing_id, args.price, args.category, keywords,
        cost=args.cost, target_margin=args.margin,
    )
    print(rec.summary())


def cmd_psych(args):
    """Show the charm-priced alternative for a price."""
    from shopgrade.smart_pricing import analyze_psychological_pricing

    result = analyze_psychological_pricing(args.price)
    print(f"💲 ${result.current_price:.2f} → ${result.psychological_price:.2f}")
    print(f"   {result.impact}")
    for s in result.suggestions:
        print(f"   → {s}")


def cmd_benchmarks(args):
    """List industry benchmarks."""
    from shopgrade.shop_comparator import INDUSTRY_BENCHMARKS

    categories = [args.category] if args.category else list(INDUSTRY_BENCHMARKS)
    print("📋 Industry Benchmarks (monthly sales):")
    for name in categories:
        b = INDUSTRY_BENCHMARKS.get(name)
        if b is None:
            print(f"  {name}: no benchmark")
            continue
        print(f"  {b.category}: avg {b.average:g} | median {b.median:g} | "
              f"top 10% {b.top10_percent:g} | top 25% {b.top25_percent:g} | "
              f"bottom 25% {b.bottom25_percent:g} (n={b.sample_size})")


def _provider(args):
    """Provider from --data JSON, --etsy, or synthetic competitor prices only."""
    from shopgrade.config import config
    from shopgrade.providers import EtsyMetricsProvider, StaticMetricsProvider

    if getattr(args, "data", None):
        return StaticMetricsProvider.from_json_file(args.data, synthesize_prices=True)
    if getattr(args, "etsy", False):
        config.validate()
        return EtsyMetricsProvider()
    return StaticMetricsProvider(synthesize_prices=True)


def _add_source_args(p):
    p.add_argument("--data", "-d", help="JSON file with listings, shops and competitor prices")
    p.add_argument("--etsy", action="store_true", help="Fetch from the Etsy Open API")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="shopgrade",
        description="shopgrade CLI — Grade Etsy listings, compare shops, check shop health and pricing",
    )
    parser.add_argument("--log-level", help="Logging level (default from LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", help="Command")

    # grade
    p = sub.add_parser("grade", help="Grade a listing")
    p.add_argument("--file", "-f", help="Listing JSON file")
    p.add_argument("--listing-id", type=int, help="Listing id to fetch")
    p.add_argument("--json", action="store_true", help="Print JSON instead of a summary")
    p.add_argument("--save", action="store_true", help="Save the grade to history")
    _add_source_args(p)

    # bulk
    p = sub.add_parser("bulk", help="Grade listings from a CSV/JSON file")
    p.add_argument("--file", "-f", required=True, help="Input file")
    p.add_argument("--output", "-o", help="Save grades (csv/json/txt/html by extension)")
    p.add_argument("--max", type=int, default=50, help="Max listings")

    # compare
    p = sub.add_parser("compare", help="Compare a shop with benchmarks and competitors")
    p.add_argument("--shop", required=True, help="Shop id or name")
    p.add_argument("--category", required=True, help="Benchmark category (jewelry, home_decor, art)")
    p.add_argument("--competitor", "-c", action="append", help="Competitor shop (repeatable)")
    p.add_argument("--report", action="store_true", help="Print the full text report")
    _add_source_args(p)

    # health
    p = sub.add_parser("health", help="Score shop health")
    p.add_argument("--file", "-f", required=True, help="JSON with 'listings' and 'metrics'")
    p.add_argument("--shop", required=True, help="Shop id")
    p.add_argument("--report", action="store_true", help="Print the full text report")

    # price
    p = sub.add_parser("price", help="Recommend a price")
    p.add_argument("--price", type=float, required=True, help="Current price")
    p.add_argument("--category", default="", help="Listing category")
    p.add_argument("--keywords", "-k", help="Keywords (comma-separated)")
    p.add_argument("--cost", type=float, help="Unit cost")
    p.add_argument("--margin", type=float, help="Target margin percent")
    p.add_argument("--listing-id", type=int, default=0, help="Listing id")
    _add_source_args(p)

    # psych
    p = sub.add_parser("psych", help="Psychological pricing check")
    p.add_argument("--price", type=float, required=True, help="Price")

    # benchmarks
    p = sub.add_parser("benchmarks", help="List industry benchmarks")
    p.add_argument("--category", help="Single category")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level)

    commands = {
        "grade": cmd_grade,
        "bulk": cmd_bulk,
        "compare": cmd_compare,
        "health": cmd_health,
        "price": cmd_price,
        "psych": cmd_psych,
        "benchmarks": cmd_benchmarks,
    }
    try:
        commands[args.command](args)
    except (DataUnavailableError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
