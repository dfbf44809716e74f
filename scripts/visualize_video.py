#!/usr/bin/env python3
"""Run detection + centroid tracking on a video file and draw the results.

Draws bounding boxes and "ID n | class conf%" tags on each frame and writes
the annotated output to a new video file.

Usage:
    python scripts/visualize_video.py input.mp4 output_annotated.mp4

    # Or show live (requires display):
    python scripts/visualize_video.py input.mp4 --show

    # Only track people and cars:
    python scripts/visualize_video.py input.mp4 out.mp4 --classes person,car
"""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import cv2

from tracking.config import TrackingConfig
from tracking.detector import Detector
from tracking.overlay import draw_detections, draw_fps
from tracking.pipeline import FramePump


def main() -> None:
    parser = argparse.ArgumentParser(description="Visualize centroid tracking on a video")
    parser.add_argument("input", help="Input video file path")
    parser.add_argument("output", nargs="?", help="Output annotated video path")
    parser.add_argument("--show", action="store_true", help="Display frames live")
    parser.add_argument(
        "--model", default="yolo11n.pt", help="YOLO model (default: yolo11n.pt)"
    )
    parser.add_argument("--conf", type=float, default=0.4, help="Confidence threshold")
    parser.add_argument("--classes", default="", help="Comma-separated classes to keep")
    parser.add_argument("--max-disappeared", type=int, default=40)
    parser.add_argument("--max-distance", type=float, default=80.0)
    args = parser.parse_args()

    if not Path(args.input).exists():
        print(f"Error: input file not found: {args.input}", file=sys.stderr)
        sys.exit(1)

    cap = cv2.VideoCapture(args.input)
    if not cap.isOpened():
        print(f"Error: cannot open video: {args.input}", file=sys.stderr)
        sys.exit(1)

    fps = cap.get(cv2.CAP_PROP_FPS) or 30
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    total = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))

    print(f"Loading model: {args.model}")
    detector = Detector(model_name=args.model, confidence=args.conf)
    pump = FramePump(
        TrackingConfig(
            video_source=args.input,
            yolo_model=args.model,
            yolo_confidence=args.conf,
            class_filter=args.classes,
            max_disappeared=args.max_disappeared,
            max_distance=args.max_distance,
        ),
        detector,
    )

    writer = None
    if args.output:
        fourcc = cv2.VideoWriter_fourcc(*"mp4v")
        writer = cv2.VideoWriter(args.output, fourcc, fps, (width, height))

    print(f"Input:  {args.input} ({width}x{height} @ {fps:.1f} fps, {total} frames)")
    if args.output:
        print(f"Output: {args.output}")

    t_start = time.monotonic()
    max_id = 0

    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break

            tracked = pump.process_frame(frame)
            max_id = max([max_id] + [d.track_id for d in tracked if d.track_id is not None])

            elapsed = time.monotonic() - t_start
            proc_fps = pump.frame_index / elapsed if elapsed > 0 else 0
            draw_detections(frame, tracked)
            draw_fps(frame, proc_fps)

            if writer:
                writer.write(frame)

            if args.show:
                cv2.imshow("objtrack", frame)
                if cv2.waitKey(1) & 0xFF == ord("q"):
                    break

            if pump.frame_index % 30 == 0:
                print(f"  {pump.frame_index}/{total} frames ({proc_fps:.1f} fps processing)")

    finally:
        cap.release()
        if writer:
            writer.release()
        if args.show:
            cv2.destroyAllWindows()

    elapsed = time.monotonic() - t_start
    frames = pump.frame_index
    print(f"\nDone. {frames} frames in {elapsed:.1f}s ({frames / max(elapsed, 1e-9):.1f} fps)")
    print(f"Identities issued: {max_id}")
    if args.output:
        print(f"Annotated video saved to: {args.output}")


if __name__ == "__main__":
    main()
