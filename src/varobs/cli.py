from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .aggregate import merge_file, top_site_rows
from .plotting import plot_coverage_hist, plot_strand_fraction
from .reduce import DEFAULT_CHUNK_SIZE, STRATEGIES
from .report import render_report
from .toy_data import make_toy_data
from .utils import ensure_outdir


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _positive_int(s: str) -> int:
    try:
        v = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected an integer, got: {s}") from None
    if v < 1:
        raise argparse.ArgumentTypeError(f"Expected an integer >= 1, got: {v}")
    return v


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    msg = f"{err.__class__.__name__}: {err}"
    sys.stderr.write(msg + "\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="varobs",
        description=(
            "varobs: per-site variant evidence accumulator. Merges per-read allele "
            "observations (strand counts, MAPQ energy, coverage, copy-number "
            "log-likelihoods) into one observation per site/allele."
        ),
    )
    p.add_argument("--version", action="version", version=f"varobs {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a small per-read observation file for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--sites", type=_positive_int, default=5, help="Number of biallelic sites.")
    t.add_argument("--reads-per-site", type=_positive_int, default=20, help="Reads per site.")
    t.add_argument("--copy-number", type=_positive_int, default=2, help="Copy number (ploidy).")
    t.add_argument("--seed", type=int, default=7, help="Random seed.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # merge
    # -----------------
    m = sub.add_parser(
        "merge",
        help="Merge keyed per-read observations (JSONL[.gz]) into one observation per site/allele.",
    )
    m.add_argument("--input", required=True, type=_path_exists, help="Observations (.jsonl/.jsonl.gz).")
    m.add_argument("--outdir", required=True, help="Output directory.")
    m.add_argument(
        "--strategy",
        choices=list(STRATEGIES),
        default="fold",
        help="Reduction order: sequential fold, pairwise tree, or chunked partitions.",
    )
    m.add_argument(
        "--chunk-size",
        type=_positive_int,
        default=DEFAULT_CHUNK_SIZE,
        help="Partition size for --strategy chunked.",
    )
    m.add_argument(
        "--workers",
        type=_positive_int,
        default=1,
        help="Worker threads for --strategy chunked.",
    )
    m.add_argument(
        "--merged-out",
        default=None,
        help="Optional path for merged observations (default: outdir/merged.jsonl.gz).",
    )
    m.add_argument("--no-report", action="store_true", help="Skip plots and report.html.")
    m.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    m.add_argument("--resume", action="store_true", help="Skip if outputs already exist.")
    m.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "varobs quickstart (copy/paste):",
        "",
        "1) Try it on toy data:",
        "   varobs make-toy-data --outdir toy/",
        "   varobs merge --input toy/observations.jsonl.gz --outdir results/",
        "   Outputs: results/report.html, results/merged.jsonl.gz, results/summary.json",
        "",
        "2) Merge the way independent workers would (partitioned, then tree-merged):",
        "   varobs merge \\",
        "     --input observations.jsonl.gz \\",
        "     --strategy chunked --chunk-size 256 --workers 4 \\",
        "     --outdir results/",
        "",
        "Tip: use --dry-run to validate inputs and print the planned outputs.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(
        outdir=outdir,
        sites=int(args.sites),
        reads_per_site=int(args.reads_per_site),
        copy_number=int(args.copy_number),
        seed=int(args.seed),
    )
    print(json.dumps(summary, indent=2))
    return 0


def cmd_merge(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "merge.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("varobs")
    logger.info("varobs %s", __version__)

    merged_out = Path(args.merged_out) if args.merged_out else outdir / "merged.jsonl.gz"

    try:
        if args.dry_run:
            print("Dry-run: inputs look OK.")
            print(f"Strategy: {args.strategy}")
            print("Planned outputs:")
            print(f"  merged observations -> {merged_out}")
            print(f"  summary.json -> {outdir / 'summary.json'}")
            if not args.no_report:
                print(f"  report.html -> {outdir / 'report.html'}")
            return 0

        outdir = ensure_outdir(outdir)

        if args.resume and (outdir / "summary.json").exists():
            logger.info("Resume enabled: summary.json already exists in %s", outdir)
            report_path = outdir / "report.html"
            print(str(report_path if report_path.exists() and not args.no_report else outdir / "summary.json"))
            return 0

        run, merged = merge_file(
            input_path=args.input,
            outdir=outdir,
            strategy=args.strategy,
            chunk_size=int(args.chunk_size),
            workers=int(args.workers),
            merged_path=merged_out,
            progress=True,
        )

        if args.no_report:
            print(str(merged_out))
            return 0

        plots_dir = outdir / "plots"
        plots_dir.mkdir(parents=True, exist_ok=True)
        coverage_png = plots_dir / "coverage_hist.png"
        strand_png = plots_dir / "strand_fraction.png"

        plot_coverage_hist(coverages=run["coverages"], out_png=coverage_png)
        plot_strand_fraction(fractions=run["strand_fractions"], out_png=strand_png)

        plots_rel = {
            "coverage_hist": str(Path("plots") / coverage_png.name),
            "strand_fraction": str(Path("plots") / strand_png.name),
        }

        report_path = render_report(
            outdir=outdir,
            version=__version__,
            run=run,
            plots=plots_rel,
            top_sites=top_site_rows(merged),
        )

        logger.info("Report written: %s", report_path)
        print(str(report_path))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "merge":
        return cmd_merge(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
