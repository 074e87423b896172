# src/fastrmsds/cli/main.py
from __future__ import annotations

import sys
import argparse

from ._common import setup_logging, build_config
from ..utils.logging import log_run_header, invocation_header
from ..utils.io import write_matrix

_DESCRIPTION = """\
Calculate a pair-wise RMSD for a trajectory (or between two trajectories).

In the single-trajectory case, the ith structure is superposed onto the jth
structure and the RMSD stored in a symmetric matrix. The block structure is
indicative of sets of similar conformations; the presence (or lack) of
cross-peaks is diagnostic of sampling quality.

The selected atoms of every frame are cached in memory. If the cache gets
too large your machine may swap; the tool warns when that is likely. Use
--cache 0 to re-read frames from disk instead.
"""

_EPILOG = """\
examples:
  fastrmsds model.pdb simulation.dcd > rmsd.asc
  fastrmsds --cache 0 model.pdb simulation.dcd > rmsd.asc
  fastrmsds --sel1 "resid 0 to 99 and name CA" model.pdb simulation.dcd -o rmsd.asc
  fastrmsds inactive.pdb inactive.dcd active.pdb active.dcd > rmsd.asc

With two trajectories the selections must match in number of atoms and in
order (the first atom of --sel1 is matched with the first atom of --sel2).
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fastrmsds",
        description=_DESCRIPTION,
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "files", nargs="*", metavar="FILE",
        help="model-1 trajectory-1 [model-2 trajectory-2]",
    )
    parser.add_argument("-o", "--output", default=None, help="Write the matrix here instead of stdout")
    parser.add_argument("--system", metavar="FILE", default=None,
                        help="YAML/JSON system file (trajectory, topology, frames, atoms, skip, range, options)")
    parser.add_argument("--config", metavar="FILE", default=None, help="YAML/JSON run options file")
    parser.add_argument("--opt", action="append", default=[], metavar="KEY=VALUE",
                        help="Override a run option (repeatable). Example: --opt workers=4")

    sel = parser.add_argument_group("selection")
    sel.add_argument("--sel1", default=None, help='Atom selection for first system (default: "name CA")')
    sel.add_argument("--skip1", type=int, default=0, help="Skip n frames of first trajectory")
    sel.add_argument("--range1", default=None, help="Matlab-style range of frames to use from first trajectory")
    sel.add_argument("--sel2", default=None, help='Atom selection for second system (default: "name CA")')
    sel.add_argument("--skip2", type=int, default=0, help="Skip n frames of second trajectory")
    sel.add_argument("--range2", default=None, help="Matlab-style range of frames to use from second trajectory")

    run = parser.add_argument_group("run")
    run.add_argument("--cache", type=int, choices=(0, 1), default=None,
                     help="1: hold frames in memory (default), 0: re-read frames on every access")
    run.add_argument("-N", "--noout", action="store_true",
                     help="Do not output the matrix (only compute it)")
    run.add_argument("--precision", type=int, default=None, help="Decimals in the output matrix (default 2)")
    run.add_argument("--workers", type=int, default=None, help="Threads for the pair loop (default 1)")
    run.add_argument("--progress-step", dest="progress_step", type=float, default=None,
                     help="Fraction of work between progress lines (default 0.1)")
    run.add_argument("--memory-fraction", dest="memory_fraction", type=float, default=None,
                     help="Warn when the cache exceeds this fraction of physical memory (default 2/3)")
    run.add_argument("--auto-stream", dest="auto_stream", action="store_true",
                     help="Switch to --cache 0 automatically when the memory warning fires")
    run.add_argument("--allow-reflection", dest="allow_reflection", action="store_true",
                     help="Allow improper rotations (mirror images) in the superposition")
    run.add_argument("--units", choices=("angstrom", "nm"), default=None,
                     help="Length unit of the output (default angstrom)")
    run.add_argument("--strict", action="store_true", help="Raise on unknown run options")

    log = parser.add_argument_group("logging")
    log.add_argument("--verbose", action="store_true", help="Print detailed log messages")
    log.add_argument("--quiet", action="store_true", help="Only warnings and errors; no progress lines")
    log.add_argument("--log", default=None, metavar="FILE", help="Also write the log to FILE")
    return parser


def _check_files(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    n = len(args.files)
    if args.system:
        if n not in (0, 2):
            parser.error("with --system, only a second model/trajectory pair may be given")
    elif n not in (2, 4):
        parser.error("expected: model-1 trajectory-1 [model-2 trajectory-2]")


def main(argv=None) -> None:
    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    _check_files(parser, args)

    config = build_config(args)
    logger = setup_logging(args.verbose, args.quiet, args.log)

    # Emit version/runtime header for provenance
    try:
        log_run_header(logger)
    except Exception:
        # Never fail the CLI due to logging
        pass

    logger.info("Parsed arguments: %s", args)
    logger.info("Run configuration: %s", config)

    from .. import FastRMSDs, AnalysisError, InputError

    files = list(args.files)
    try:
        if args.system:
            first = FastRMSDs(system=args.system, atoms=args.sel1, skip=args.skip1,
                              range_spec=args.range1, config=config)
        else:
            model1, traj1 = files[:2]
            files = files[2:]
            first = FastRMSDs(traj1, model1, atoms=args.sel1 or "name CA", skip=args.skip1,
                              range_spec=args.range1, config=config)
        second = None
        if files:
            model2, traj2 = files
            second = FastRMSDs(traj2, model2, atoms=args.sel2 or "name CA", skip=args.skip2,
                               range_spec=args.range2, config=config)
    except (InputError, OSError, ValueError, TypeError) as e:
        logger.error("Error initializing FastRMSDs: %s", e)
        sys.exit(2)

    header = invocation_header(["fastrmsds"] + list(sys.argv[1:] if argv is None else argv))
    try:
        analysis = first.rmsds(other=second, header=header, save=False, plot=False)
    except AnalysisError as e:
        logger.error("%s: %s", type(e).__name__, e)
        sys.exit(1)

    if config.noout:
        logger.info("Matrix output suppressed (--noout)")
        return

    if args.output:
        write_matrix(analysis.data, args.output, precision=config.precision, header=header)
        logger.info("RMSD matrix written to %s", args.output)
    else:
        write_matrix(analysis.data, sys.stdout, precision=config.precision, header=header)
        sys.stdout.flush()


if __name__ == "__main__":  # pragma: no cover
    main()
