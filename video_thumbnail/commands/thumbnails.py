"""Management command for video thumbnails.

Usage:
    video-thumbnail probe VIDEO
    video-thumbnail extract-frames VIDEO [--count N] [--output-dir DIR]
    video-thumbnail sync (MEDIA_ID | --all)
    video-thumbnail regenerate MEDIA_ID [--position PERCENT]
    video-thumbnail dispatch [--position PERCENT]
    video-thumbnail stop JOB_ID
"""

import argparse
import asyncio
import os
import shutil
import sys

from ..config.settings import load_settings, resolve_ffmpeg_path
from ..database.connection import SessionLocal
from ..domain.exceptions import (
    JobNotFoundError,
    MediaNotFoundError,
    RetriesExhaustedError,
    VideoThumbnailError,
)
from ..domain.models import ThumbnailJob
from ..logging_config import setup_logging
from ..services.container import build_services
from ..services.duration_probe import DurationProbe
from ..services.frame_sampler import FrameSampler
from ..utils.process_runner import ProcessRunner


def build_sampler(settings) -> FrameSampler:
    """Decoder-only wiring for commands that do not touch the database."""
    ffmpeg_path = resolve_ffmpeg_path(settings.ffmpeg_path)
    runner = ProcessRunner(
        default_timeout=settings.operation_timeout,
        min_timeout=settings.min_timeout,
        max_timeout=settings.max_timeout,
    )
    probe = DurationProbe(runner, ffmpeg_path, timeout=settings.probe_timeout)
    return FrameSampler(
        runner,
        probe,
        ffmpeg_path,
        scratch_dir=settings.scratch_dir,
        frame_timeout=settings.frame_timeout,
    )


def cmd_probe(args, settings) -> int:
    sampler = build_sampler(settings)
    duration = sampler.probe.probe(args.video)
    if duration <= 0:
        print(f"duration unknown: {args.video}", file=sys.stderr)
        return 1
    print(f"{duration:.3f}")
    return 0


def cmd_extract_frames(args, settings) -> int:
    sampler = build_sampler(settings)
    frames = sampler.extract_frames(args.video, args.count)
    if not frames:
        print(f"no frames extracted: {args.video}", file=sys.stderr)
        return 1

    for frame in frames:
        path = frame.path
        if args.output_dir:
            os.makedirs(args.output_dir, exist_ok=True)
            path = os.path.join(args.output_dir, f"frame_{frame.index:02d}.jpg")
            shutil.move(frame.path, path)
        print(f"{frame.index}\t{frame.timestamp:.3f}\t{path}")
    return 0


def cmd_sync(args, services) -> int:
    if args.all:
        stats = asyncio.run(services.reconciler.run(resync_flags=True))
        print(
            f"sync done, media_checked={stats['media_checked']}, "
            f"with_thumbnails={stats['flags_set']}, errors={len(stats['errors'])}"
        )
        return 1 if stats["errors"] else 0

    if not args.media_id:
        print("sync needs a media ID or --all", file=sys.stderr)
        return 2

    has_thumbnails = services.synchronizer.synchronize(args.media_id)
    print(f"{args.media_id}\thas_thumbnails={has_thumbnails}")
    return 0


def cmd_regenerate(args, services) -> int:
    percent = services.settings.clamp_frame_percent(args.position)
    ok = services.synchronizer.regenerate(args.media_id, percent)
    print(f"{args.media_id}\tregenerated={ok}")
    return 0 if ok else 1


async def _dispatch(services, job: ThumbnailJob) -> str:
    await services.sender.initialize()
    try:
        return await services.strategy.send(job)
    finally:
        await services.sender.close()


def cmd_dispatch(args, services) -> int:
    percent = services.settings.clamp_frame_percent(args.position)
    job = ThumbnailJob.new(
        frame_position=percent, max_retries=services.settings.max_retries
    )
    services.job_repository.save(job)

    try:
        queue_job_id = asyncio.run(_dispatch(services, job))
    except RetriesExhaustedError as e:
        print(f"dispatch failed: {e}", file=sys.stderr)
        return 2

    print(f"{job.job_id}\t{queue_job_id}")
    return 0


def cmd_stop(args, services) -> int:
    job = services.job_repository.find_by_id(args.job_id)
    if job is None:
        raise JobNotFoundError(args.job_id)
    if job.is_terminal():
        print(f"{job.job_id} already {job.status}")
        return 0
    services.strategy.stop(job)
    print(f"{job.job_id}\tstopped")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="video-thumbnail", description="Video thumbnail management"
    )
    parser.add_argument("--config", help="Path to a JSON config file")
    parser.add_argument(
        "--log-level", default="WARNING", help="Logging level (default: WARNING)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    probe = subparsers.add_parser("probe", help="Print a video's duration in seconds")
    probe.add_argument("video")

    extract = subparsers.add_parser(
        "extract-frames", help="Extract evenly spaced frames from a video"
    )
    extract.add_argument("video")
    extract.add_argument("--count", type=int, default=None)
    extract.add_argument("--output-dir", help="Move frames here instead of scratch")

    sync = subparsers.add_parser("sync", help="Recompute has-thumbnails flags")
    sync.add_argument("media_id", nargs="?")
    sync.add_argument("--all", action="store_true", help="Every supported video")

    regenerate = subparsers.add_parser(
        "regenerate", help="Regenerate one media item's thumbnails"
    )
    regenerate.add_argument("media_id")
    regenerate.add_argument("--position", type=float, default=None)

    dispatch = subparsers.add_parser("dispatch", help="Queue a batch regeneration job")
    dispatch.add_argument("--position", type=float, default=None)

    stop = subparsers.add_parser("stop", help="Stop a batch regeneration job")
    stop.add_argument("job_id")

    return parser.parse_args(argv)


DECODER_COMMANDS = {
    "probe": cmd_probe,
    "extract-frames": cmd_extract_frames,
}

SERVICE_COMMANDS = {
    "sync": cmd_sync,
    "regenerate": cmd_regenerate,
    "dispatch": cmd_dispatch,
    "stop": cmd_stop,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(service="video-thumbnail-cli", level=args.log_level.upper())
    settings = load_settings(args.config)

    if args.command == "extract-frames" and args.count is None:
        args.count = settings.frames_count

    try:
        if args.command in DECODER_COMMANDS:
            return DECODER_COMMANDS[args.command](args, settings)

        session = SessionLocal()
        try:
            services = build_services(settings, session)
            return SERVICE_COMMANDS[args.command](args, services)
        finally:
            session.close()

    except (MediaNotFoundError, JobNotFoundError) as e:
        print(str(e), file=sys.stderr)
        return 1
    except VideoThumbnailError as e:
        print(f"{args.command} failed: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
