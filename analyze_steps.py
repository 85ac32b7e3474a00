"""
Step Leaderboard - Offline Analysis
Parse a weekly step CSV and print the ranking and analytics without a database
"""

import json
import sys
from pathlib import Path

from backend.app.leaderboard.analytics import DailyPoint, compute_weekly_analytics
from backend.app.leaderboard.errors import CsvFormatError
from backend.app.leaderboard.parsing import parse_step_csv
from backend.app.leaderboard.scoring import rank_by_steps
from backend.app.leaderboard.weeks import get_monday_week_bounds


def print_banner():
    print("="*80)
    print("  STEP CHALLENGE ANALYZER")
    print("  Weekly leaderboard from a step export")
    print("="*80)
    print()


def print_help():
    print("""
Usage: python analyze_steps.py <file.csv> [options]

Options:
  --help              Show this help message
  --goal <steps>      Daily step goal used for the goal rate (default: 10000)
  --top <n>           Only print the first n rows of the ranking
  --export-json       Export results to JSON file

Examples:
  python analyze_steps.py week3.csv
  python analyze_steps.py week3.csv --top 10
  python analyze_steps.py week3.csv --goal 8000 --export-json
""")


def rank_participants(participants):
    """Same ranking as an upload: file rows are submitted in order, so ties keep file order."""
    return [
        {
            'rank': rank,
            'points': points,
            'name': item.name,
            'steps': item.total_steps,
            'distance': round(item.total_distance, 2),
        }
        for item, rank, points in rank_by_steps(participants, lambda item: item.total_steps)
    ]


def build_points(participants, bounds):
    points = []
    for index, item in enumerate(participants):
        for day in item.daily_data:
            if bounds.contains(day.date):
                points.append(DailyPoint(participant_id=str(index), name=item.name, date=day.date, steps=day.steps))
    return points


def export_to_json(results, filename='step_results.json'):
    """Export analysis results to JSON"""
    with open(filename, 'w', encoding='utf-8') as f:
        json.dump(results, f, indent=2, default=str)
    print(f"Results exported to: {filename}")


def main():
    print_banner()

    args = sys.argv[1:]

    if not args or '--help' in args or '-h' in args:
        print_help()
        return

    csv_file = None
    goal = 10000
    top = None
    export_json = False

    i = 0
    while i < len(args):
        if args[i] == '--goal' and i + 1 < len(args):
            goal = int(args[i + 1])
            i += 2
        elif args[i] == '--top' and i + 1 < len(args):
            top = int(args[i + 1])
            i += 2
        elif args[i] == '--export-json':
            export_json = True
            i += 1
        elif csv_file is None and not args[i].startswith('--'):
            csv_file = args[i]
            i += 1
        else:
            print(f"Unknown option: {args[i]}")
            print("Use --help for usage information")
            sys.exit(1)

    path = Path(csv_file) if csv_file else None
    if path is None or not path.exists():
        print(f"CSV file not found: {csv_file}")
        sys.exit(1)

    print(f"Using file: {path}")
    print()

    try:
        parsed = parse_step_csv(path.read_bytes())
    except CsvFormatError as exc:
        print(f"✗ {exc}")
        sys.exit(1)

    bounds = get_monday_week_bounds(parsed.dates)
    skipped = [day for day in parsed.dates if not bounds.contains(day)]
    ranking = rank_participants(parsed.participants)
    summary = compute_weekly_analytics(build_points(parsed.participants, bounds), goal_steps=goal).summary

    print("="*80)
    print(f"{bounds.title.upper()}  ({bounds.start} to {bounds.end})")
    print("="*80)
    print(f"Participants: {len(ranking)}")
    print(f"Date columns: {len(parsed.dates)}")
    if skipped:
        print(f"Skipped dates outside the week: {', '.join(str(day) for day in skipped)}")
    print()

    print(f"{'Rank':<6}{'Name':<30}{'Steps':>12}{'Distance':>12}{'Points':>8}")
    print("-"*68)
    for row in ranking[:top] if top else ranking:
        print(f"{row['rank']:<6}{row['name'][:29]:<30}{row['steps']:>12,}{row['distance']:>12.2f}{row['points']:>8}")
    print()

    print("="*80)
    print("ANALYTICS")
    print("="*80)
    if summary.daily_champion:
        champion = summary.daily_champion
        print(f"Daily Champion: {champion.name} ({champion.steps:,} steps on {champion.date})")
    print(f"Most Consistent: {summary.most_consistent.name}")
    print(f"Biggest Improver: {summary.biggest_improver.name}")
    print(f"Weekday Leader: {summary.weekday_leader.name}")
    print(f"Weekend Leader: {summary.weekend_leader.name}")
    if summary.most_active_day:
        print(f"Most Active Day: {summary.most_active_day.date} ({summary.most_active_day.steps:,} steps)")
    print(f"Participation Rate: {summary.participation_rate:.1f}%")
    print(f"Goal Achievement ({goal:,} steps): {summary.goal_achievement_rate:.1f}%")
    print(f"Momentum: {summary.momentum}")
    if summary.daily_wins:
        print(f"\nDaily Wins:")
        for count in summary.daily_wins.values():
            print(f"  - {count.name}: {count.wins}")
    print()

    if export_json:
        export_to_json({
            'week': {
                'title': bounds.title,
                'start': bounds.start,
                'end': bounds.end,
                'week_number': bounds.week_number,
                'year': bounds.year,
            },
            'skipped_dates': skipped,
            'ranking': ranking,
            'analytics': {
                'daily_champion': summary.daily_champion.name if summary.daily_champion else None,
                'most_consistent': summary.most_consistent.name,
                'biggest_improver': summary.biggest_improver.name,
                'weekday_leader': summary.weekday_leader.name,
                'weekend_leader': summary.weekend_leader.name,
                'participation_rate': summary.participation_rate,
                'goal_achievement_rate': summary.goal_achievement_rate,
                'momentum': summary.momentum,
                'daily_wins': [
                    {'name': count.name, 'wins': count.wins}
                    for count in summary.daily_wins.values()
                ],
            },
        })


if __name__ == "__main__":
    main()
