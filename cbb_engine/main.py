"""Main CLI interface for the college basketball stats engine."""

import argparse
import logging
import sys

import pandas as pd

from .config import EngineConfig, load_lineup_order_rules, load_position_overrides
from .data.loader import DataLoader
from .stats.overrides import overrides_as_map
from .tables.lineup_tables import (
    build_baseline_player_info,
    build_position_player_map,
    enrich_lineups,
    filter_lineups,
)


def _engine_config(args) -> EngineConfig:
    """Environment config with any command line flags applied on top."""
    config = EngineConfig.from_env()
    if args.avg_efficiency is not None:
        config.avg_efficiency = args.avg_efficiency
    if args.adjust_for_luck:
        config.adjust_for_luck = True
    if args.luck_base is not None:
        config.luck_config_base = args.luck_base
    if args.rules is not None:
        config.lineup_rules_path = args.rules
    return config


def _load_and_rate_players(args, config: EngineConfig):
    bundle = DataLoader.load_team_bundle(args.input)
    manual_overrides = overrides_as_map(DataLoader.load_overrides(args.overrides))
    global_roster = dict(bundle.season_players)
    for player in bundle.players:
        global_roster.setdefault(player.code or player.key, player)

    players = build_baseline_player_info(
        bundle.players,
        global_roster,
        bundle.team,
        config.avg_efficiency,
        config.adjust_for_luck,
        config.luck_config_base,
        manual_overrides,
        bundle.on_ball,
    )
    positions = build_position_player_map(
        list(players.values()),
        bundle.team_season_key,
        position_overrides=load_position_overrides(config.lineup_rules_path),
    )
    return bundle, players, positions


def rate_players(args):
    """Build the baseline player table with ratings and positions."""
    config = _engine_config(args)
    print(f"Loading team bundle from {args.input}...")

    try:
        bundle, players, positions = _load_and_rate_players(args, config)
    except (OSError, ValueError) as e:
        print(f"Error loading data: {e}")
        return 1

    print(f"Rated {len(players)} players (luck adjusted: {config.adjust_for_luck})")

    rows = []
    for key, player in players.items():
        diag = player.diag_def_rtg
        on_ball = diag.on_ball_diags if diag is not None else None
        rows.append({
            "player": key,
            "code": player.code,
            "position": positions[key].pos_class,
            "off_poss_pct": player.value("off_team_poss_pct"),
            "off_usage": player.value("off_usage"),
            "off_rtg": player.value("off_rtg"),
            "off_adj_rtg": player.value("off_adj_rtg"),
            "def_rtg": player.value("def_rtg"),
            "def_adj_rtg": player.value("def_adj_rtg"),
            "on_ball_adj_def_rtg": on_ball.adj_def_rtg if on_ball is not None else None,
        })
    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values("off_poss_pct", ascending=False)
    df.to_csv(args.output, index=False)

    print(f"\n{'='*60}")
    print(f"PLAYERS - {bundle.team_season_key or args.input}")
    print(f"{'='*60}\n")
    for row in df.head(args.top).itertuples():
        print(f"   {row.player:<24} {row.position:<6} ORtg {row.off_adj_rtg:6.1f}  DRtg {row.def_adj_rtg:6.1f}")

    print(f"\nSaved player table to {args.output}")
    return 0


def rate_lineups(args):
    """Filter, order and (optionally) luck adjust the team's lineups."""
    config = _engine_config(args)
    print(f"Loading team bundle from {args.input}...")

    try:
        bundle, players, positions = _load_and_rate_players(args, config)
    except (OSError, ValueError) as e:
        print(f"Error loading data: {e}")
        return 1

    override_rules = load_lineup_order_rules(config.lineup_rules_path)
    players_by_id = {player.key: player for player in players.values()}
    lineups = filter_lineups(
        bundle.lineups,
        args.filter,
        min_poss=args.min_poss,
        team_season_key=bundle.team_season_key,
        position_from_player_key=positions,
        sort_by=args.sort,
        max_size=args.max,
        override_rules=override_rules,
    )
    enrich_lineups(
        lineups,
        bundle.team,
        players_by_id,
        config.avg_efficiency,
        config.adjust_for_luck,
        bundle.team_season_key,
        positions,
        override_rules,
        config.luck_config_base,
        bundle.season_team,
        {player.key: player for player in bundle.season_players.values()},
    )
    print(f"{len(lineups)} of {len(bundle.lineups)} lineups match '{args.filter}'")

    df = pd.DataFrame([
        {
            "lineup": " / ".join(p.code for p in lineup.players),
            "off_poss": lineup.value("off_poss"),
            "def_poss": lineup.value("def_poss"),
            "off_3p": lineup.value("off_3p"),
            "def_3p": lineup.value("def_3p"),
            "off_ppp": lineup.value("off_ppp"),
            "def_ppp": lineup.value("def_ppp"),
        }
        for lineup in lineups
    ])
    df.to_csv(args.output, index=False)
    if args.json:
        DataLoader.save_stat_sets_to_json(lineups, args.json)
    print(f"Saved lineup table to {args.output}")
    return 0


def _add_engine_args(sub_parser: argparse.ArgumentParser) -> None:
    sub_parser.add_argument("--input", "-i", required=True, help="Team bundle JSON")
    sub_parser.add_argument("--overrides", default=None, help="Optional manual overrides JSON")
    sub_parser.add_argument("--rules", default=None, help="Position/lineup rules JSON (default: $CBB_LINEUP_RULES)")
    sub_parser.add_argument("--avg-efficiency", type=float, default=None, help="D1 average points per 100 possessions")
    sub_parser.add_argument("--adjust-for-luck", action="store_true", help="Regress shooting, turnover and rebound rates toward expectation")
    sub_parser.add_argument("--luck-base", choices=["baseline", "season"], default=None, help="Luck regression target")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="College basketball stats engine - ratings, luck, positions and lineups"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    players_parser = subparsers.add_parser("players", help="Rate players and classify positions")
    _add_engine_args(players_parser)
    players_parser.add_argument("--output", "-o", default="players.csv", help="Output CSV")
    players_parser.add_argument("--top", type=int, default=10, help="Players to print (default: 10)")

    lineups_parser = subparsers.add_parser("lineups", help="Filter and order lineups")
    _add_engine_args(lineups_parser)
    lineups_parser.add_argument("--filter", "-f", default="", help="Lineup filter, eg 'smith=PG;-jones'")
    lineups_parser.add_argument("--min-poss", type=float, default=0.0, help="Minimum possessions")
    lineups_parser.add_argument("--sort", default="desc:off_poss", help="Sort, eg 'desc:diff_ppp'")
    lineups_parser.add_argument("--max", type=int, default=None, help="Maximum lineups to keep")
    lineups_parser.add_argument("--output", "-o", default="lineups.csv", help="Output CSV")
    lineups_parser.add_argument("--json", default=None, help="Optional JSON dump of the enriched lineups")

    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "players":
        return rate_players(args)
    elif args.command == "lineups":
        return rate_lineups(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
