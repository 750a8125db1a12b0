import os
import sys
import argparse

try:
    from rich.console import Console
    from rich.table import Table
    from rich.panel import Panel
    from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn
    from rich import box
except ImportError:
    print("Error: The 'rich' library is required for the CLI but not installed.", file=sys.stderr)
    print("Please install it with: pip install wavescope[cli]", file=sys.stderr)
    sys.exit(1)

from wavescopelib import __version__
from wavescopelib.analyzer import WaveformAnalyzer
from wavescopelib.config import (
    ConfigError, QOS_PRIORITIES, default_config, load_preset, merge_configs,
    save_preset, validate_config,
)
from wavescopelib.events import EventBus
from wavescopelib.loader import samples_for_width
from wavescopelib.models import JobStatus
from wavescopelib.queue import AnalysisQueue
from wavescopelib.reader import AUDIO_EXTENSIONS
from wavescopelib.reports import save_json, summarize

console = Console()


def positive_int(value):
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return ivalue


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="wavescope: amplitude envelopes and spectra for waveform display",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--version", action="version",
                        version=f"wavescope {__version__}")

    parser.add_argument("files", nargs="+",
                        help="Audio files or directories to analyze")

    # Output size
    parser.add_argument("--count", type=positive_int, default=None,
                        help="Number of envelope values per file")
    parser.add_argument("--width", type=float, default=None,
                        help="Drawing width; count = width * scale (alternative to --count)")
    parser.add_argument("--scale", type=float, default=1.0,
                        help="Display scale factor applied to --width")

    # Analysis
    parser.add_argument("--noise_floor_db", type=float, default=None,
                        help="Noise floor (dB re. full scale); quieter input is silence (default -50)")
    parser.add_argument("--bands", type=positive_int, default=None,
                        help="Also compute spectra with this many linear frequency bands")
    parser.add_argument("--samples_per_fft", type=positive_int, default=None,
                        help="FFT window length in samples (default 4096)")
    parser.add_argument("--max_concurrent", type=positive_int, default=None,
                        help="Maximum analyses decoding at the same time (default 3)")
    parser.add_argument("--qos", type=str, choices=list(QOS_PRIORITIES), default=None,
                        help="Advisory priority class for the queued jobs")

    # Presets & reporting
    parser.add_argument("--preset", type=str, default=None,
                        help="Load settings from a JSON preset")
    parser.add_argument("--save_preset", type=str, default=None,
                        help="Write the effective settings to a JSON preset and exit")
    parser.add_argument("--json", type=str, default=None,
                        help="Write envelopes and summaries to this JSON file")

    args = parser.parse_args(argv)

    if args.count is None and args.width is None and not args.save_preset:
        parser.error("one of --count or --width is required")
    if args.scale <= 0.0:
        parser.error("--scale must be > 0")
    if args.noise_floor_db is not None and args.noise_floor_db >= 0.0:
        parser.error("--noise_floor_db must be < 0")

    return args


def collect_files(paths):
    """Expand directories into their audio files, keep explicit files as given."""
    files = []
    for p in paths:
        if os.path.isdir(p):
            for fname in sorted(os.listdir(p), key=str.lower):
                if fname.lower().endswith(AUDIO_EXTENSIONS):
                    files.append(os.path.join(p, fname))
        else:
            files.append(p)
    return files


def build_config(args):
    config = default_config()
    if args.preset:
        config = merge_configs(config, load_preset(args.preset))
    overrides = {
        "noise_floor_db": args.noise_floor_db,
        "fft_bands": args.bands,
        "samples_per_fft": args.samples_per_fft,
        "max_concurrent": args.max_concurrent,
        "qos": args.qos,
    }
    config = merge_configs(config, {k: v for k, v in overrides.items() if v is not None})
    config["json"] = args.json
    config["width"] = args.width
    config["scale"] = args.scale
    validate_config(config)
    return config


def print_results(jobs, noise_floor_db):
    table = Table(box=box.ROUNDED, title="Waveform Analysis")
    table.add_column("File", style="cyan", max_width=40)
    table.add_column("Format", style="dim")
    table.add_column("Values", justify="right")
    table.add_column("Peak", justify="right")
    table.add_column("Mean", justify="right")
    table.add_column("Spectra", justify="right")
    table.add_column("Status", justify="right")

    for job in jobs:
        name = os.path.basename(job.locator)
        res = job.result
        if job.status != JobStatus.COMPLETED or res is None:
            status = "[yellow]CANCELLED[/]" if job.status == JobStatus.CANCELLED else "[red]ERR[/]"
            table.add_row(name, "—", "—", "—", "—", "—", status)
            continue
        meta = res.metadata
        fmt_str = f"{meta.samplerate / 1000:.1f}k/{meta.channels}ch" if meta else "—"
        s = summarize(res, noise_floor_db)
        spectra = str(len(res.spectra)) if res.spectra is not None else "—"
        status = "[green]OK[/]" if res.complete else "[yellow]PARTIAL[/]"
        table.add_row(
            name, fmt_str, str(s["count"]),
            f"{s['peak_db']:.1f} dB", f"{s['mean_db']:.1f} dB",
            spectra, status,
        )
    console.print(table)

    for job in jobs:
        if job.error and job.status == JobStatus.FAILED:
            console.print(f"  [red]✗ {os.path.basename(job.locator)}:[/] {job.error}")


def main(argv=None):
    args = parse_arguments(argv)

    try:
        config = build_config(args)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 2

    if args.save_preset:
        save_preset(config, args.save_preset)
        console.print(f"[dim]Preset saved to: {args.save_preset}[/]")
        return 0

    count = args.count or samples_for_width(args.width, args.scale)
    if count <= 0:
        console.print("[bold red]Error:[/] --width * --scale must be at least 1")
        return 2

    files = collect_files(args.files)
    if not files:
        console.print("[red]No audio files found[/]")
        return 1

    console.print(Panel.fit(
        f"[bold]wavescope[/] {__version__}\n"
        f"Files: [cyan]{len(files)}[/] | Values: [cyan]{count}[/]\n"
        f"Noise floor: [cyan]{config['noise_floor_db']} dB[/] | "
        f"Bands: [cyan]{config['fft_bands'] or 'off'}[/]\n"
        f"Concurrency: [cyan]{config['max_concurrent']}[/]",
        title="Configuration"
    ))

    event_bus = EventBus()
    queue = AnalysisQueue(default_count=count, default_bands=config["fft_bands"])
    for path in files:
        queue.add(path, qos=config["qos"])

    with WaveformAnalyzer(config=config, event_bus=event_bus) as analyzer, Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task_id = progress.add_task("[cyan]Analyzing...", total=len(files))

        # Fired from worker threads as each analysis ends
        def on_analysis_done(**data):
            progress.advance(task_id)
        event_bus.subscribe("analysis.complete", on_analysis_done)
        event_bus.subscribe("analysis.failed", on_analysis_done)

        jobs = queue.run_all(analyzer)

        event_bus.unsubscribe("analysis.complete", on_analysis_done)
        event_bus.unsubscribe("analysis.failed", on_analysis_done)

    print_results(jobs, config["noise_floor_db"])

    if args.json:
        save_json(jobs, config, args.json)
        console.print(f"\n[dim]JSON saved to: {args.json}[/]")

    failed = [j for j in jobs if j.status != JobStatus.COMPLETED]
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
