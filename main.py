#!/usr/bin/env python3
"""
cult.fit PLAY Slot Booking Racer

Commands:
  race         - Race for the furthest-day slot the moment it opens
  warmup       - Open a pooled connection to the platform and exit
  schedule     - Show the booking day's slots and which one would be picked
  example-env  - Write a .env.example file
"""

import sys
import logging
import argparse
from datetime import datetime, timedelta, time as dtime
from zoneinfo import ZoneInfo

from cultbook.booking_http import BookingError, FastBookingClient
from cultbook.config import ConfigurationError, create_example_env, load_config
from cultbook.race import RaceOrchestrator, compute_target_date, wait_until
from cultbook.selector import booking_day, select_slot


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def release_time(value: str) -> dtime:
    """argparse type for HH:MM[:SS]."""
    try:
        return dtime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid time '{value}', expected HH:MM or HH:MM:SS")


def next_release(release: dtime, tz: str, now: datetime = None) -> datetime:
    """Next occurrence of ``release`` in ``tz``: today, or tomorrow if already past."""
    zone = ZoneInfo(tz)
    now = now.astimezone(zone) if now else datetime.now(zone)

    fire_at = datetime.combine(now.date(), release.replace(microsecond=0), tzinfo=zone)
    if fire_at <= now:
        fire_at = datetime.combine(now.date() + timedelta(days=1), release.replace(microsecond=0), tzinfo=zone)
    return fire_at


def build_client(args):
    """Load config and construct the booking client."""
    config, credentials = load_config(args.config)
    return config, FastBookingClient(config, credentials)


def cmd_race(args):
    """Run the booking race."""
    config, client = build_client(args)

    if args.at:
        fire_at = next_release(args.at, config.timezone)
        wait_until(
            fire_at,
            prepare=None if args.no_warmup else client.warm_connection
        )
    elif not args.no_warmup:
        client.warm_connection()

    try:
        outcome = RaceOrchestrator(client, config).run()
    finally:
        client.close()

    if outcome.success:
        print(f"✅ BOOKED slot {outcome.slot_id} on {outcome.date} "
              f"({outcome.phase.value}, {outcome.elapsed_ms}ms)")
        if outcome.duplicate_slot_ids:
            print(f"⚠️  Also booked {outcome.duplicate_slot_ids} - cancel the extras")
    else:
        print(f"❌ No slot booked after {outcome.attempts} attempts ({outcome.elapsed_ms}ms)")

    # Not getting a slot is a normal outcome, not an error
    return 0


def cmd_warmup(args):
    """Warm the connection and exit."""
    _, client = build_client(args)
    client.warm_connection()
    client.close()
    return 0


def cmd_schedule(args):
    """Show the booking day's slots and the selector's pick."""
    config, client = build_client(args)
    target_date = compute_target_date(tz=config.timezone, offset_days=config.booking_horizon_days)

    try:
        schedule = client.fetch_schedule()
        day = booking_day(schedule, target_date)
        slot = select_slot(schedule, config.target_slot_id, config.fallback_slot_ids, target_date)
    except BookingError as e:
        print(f"❌ Could not fetch schedule: {e}")
        return 1
    except Exception as e:
        logging.error(f"Schedule error: {e}", exc_info=args.verbose)
        return 1
    finally:
        client.close()

    if day is None:
        print("❌ Schedule has no days")
        return 1

    print(f"Target date: {target_date}")
    print(f"Booking day: {day.id} ({len(day.slots)} slots)")
    for entry in day.slots:
        print(f"  - {entry.id:>4}  {entry.start_time or '?':>8}  {entry.state.value}")

    if slot:
        print(f"\nWould book: slot {slot.id} at {slot.start_time} on {slot.date}")
    else:
        print("\nNo AVAILABLE slot on the booking day")
    return 0


def cmd_example_env(args):
    """Write a .env.example file."""
    create_example_env(args.output)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="cult.fit PLAY slot booking racer"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose logging"
    )
    parser.add_argument('--config', default='config.json', help='Optional JSON settings file')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Race command
    race_parser = subparsers.add_parser('race', help='Race for the slot')
    race_parser.add_argument('--at', type=release_time, help='Release time HH:MM[:SS] in the platform timezone')
    race_parser.add_argument('--no-warmup', action='store_true', help='Skip connection warm-up')

    subparsers.add_parser('warmup', help='Warm the connection pool')
    subparsers.add_parser('schedule', help='Show the booking day schedule')

    env_parser = subparsers.add_parser('example-env', help='Write a .env.example file')
    env_parser.add_argument('--output', default='.env.example', help='Output path')

    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose)

    if not args.command:
        parser.print_help()
        return 0

    # Dispatch to command handler
    commands = {
        'race': cmd_race,
        'warmup': cmd_warmup,
        'schedule': cmd_schedule,
        'example-env': cmd_example_env
    }

    try:
        return commands[args.command](args)
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        return 1


if __name__ == '__main__':
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nCancelled by user")
        sys.exit(0)
