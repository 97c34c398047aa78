"""Entry point for `python -m rhythmtap` or the `rhythmtap` console script."""

import argparse
import logging
import sys

from rhythmtap.config import (
    DEFAULT_BPM,
    GOOD_WINDOW_MS,
    LEAD_IN_MS,
    PERFECT_WINDOW_MS,
    TEMPO_PRESETS,
    HoldBonusConfig,
    TimingConfig,
)
from rhythmtap.models import Pattern
from rhythmtap.patterns import PatternLoadError, load_pattern, parse_shorthand

DEFAULT_PATTERN = "Q Q R Q"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="rhythmtap — tap along to a rhythm pattern")
    parser.add_argument("--pattern", default=DEFAULT_PATTERN,
                        help="Shorthand pattern, e.g. 'Q Q E E Q' (R = rest, . = dotted, ~ = tie)")
    parser.add_argument("--pattern-file", help="JSON pattern file (overrides --pattern)")
    parser.add_argument("--bpm", type=float, default=None, help=f"Tempo (default {DEFAULT_BPM})")
    parser.add_argument("--speed", choices=sorted(TEMPO_PRESETS), help="Tempo preset")
    parser.add_argument("--players", type=int, choices=(1, 2), default=1)
    parser.add_argument("--perfect-ms", type=float, default=PERFECT_WINDOW_MS)
    parser.add_argument("--good-ms", type=float, default=GOOD_WINDOW_MS)
    parser.add_argument("--lead-in-ms", type=float, default=LEAD_IN_MS)
    parser.add_argument("--no-hold-bonus", action="store_true", help="Disable hold-duration bonus")
    parser.add_argument("--midi", action="store_true", help="Also accept taps from the first MIDI input")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.pattern_file:
        try:
            pattern = load_pattern(args.pattern_file)
        except PatternLoadError as exc:
            logging.getLogger("rhythmtap").error("%s", exc)
            return 1
    else:
        pattern = Pattern(notes=parse_shorthand(args.pattern), name="custom")

    bpm = args.bpm if args.bpm is not None else TEMPO_PRESETS.get(args.speed, DEFAULT_BPM)
    config = TimingConfig(
        perfect_ms=args.perfect_ms,
        good_ms=args.good_ms,
        miss_window_ms=args.good_ms,
        lead_in_ms=args.lead_in_ms,
    )

    from rhythmtap.app import App

    app = App(
        pattern,
        bpm=bpm,
        players=args.players,
        config=config,
        bonus_config=HoldBonusConfig(enabled=not args.no_hold_bonus),
        use_midi=args.midi,
    )
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
