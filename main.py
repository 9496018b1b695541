#!/usr/bin/env python3
"""
VisionBridge Surroundings Assistant - Main Entry Point
=====================================================

Samples a forward-facing camera, detects objects and prints a stable,
distance-annotated description of the surroundings with a hazard flag.

Usage:
    python main.py --webcam 0
    python main.py --video walk.mp4 --interval 1.5
    python main.py --image street.jpg --detector mobilenet_ssd

References:
- OpenCV Python Tutorials: https://docs.opencv.org/4.x/d6/d00/tutorial_py_root.html
"""

import argparse
import logging
import sys

import cv2

from visionbridge.config import (
    EngineConfig,
    ScanSettings,
    create_default_config,
    load_config_from_json,
    load_settings_from_json,
    parse_size,
)
from visionbridge.data_model import DetectionResult
from visionbridge.engine import PerceptionEngine
from visionbridge.object_detection import DetectorType, ModelNotLoadedError, ObjectDetector
from visionbridge.session import ScanSession
from visionbridge.video_input import CameraFrame, CameraSource, open_camera, open_video
from visionbridge.visualization import render_preview


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Camera-based surroundings description with hazard warnings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Live webcam, one description every 3 seconds
    python main.py --webcam 0

    # Recorded walk, faster sampling, no window
    python main.py --video walk.mp4 --interval 1.0 --no-display

    # Single photo with the MobileNet-SSD detector
    python main.py --image street.jpg --detector mobilenet_ssd
        """,
    )

    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument("--webcam", type=int, metavar="INDEX", help="Webcam index")
    input_group.add_argument("--video", type=str, help="Path to a video file")
    input_group.add_argument("--image", type=str, help="Path to a still image")

    parser.add_argument(
        "--config", type=str, help="Path to engine/session JSON configuration"
    )
    parser.add_argument(
        "--detector",
        type=str,
        choices=["yolo_nano", "mobilenet_ssd"],
        default="yolo_nano",
        help="Object detection model (default: yolo_nano)",
    )
    parser.add_argument(
        "--model-dir", type=str, help="Directory with model files (default: ./models)"
    )
    parser.add_argument(
        "--no-download",
        action="store_true",
        help="Fail instead of downloading missing model files",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between analyses (default: 3.0)",
    )
    parser.add_argument(
        "--resolution",
        type=str,
        default="1280x720",
        help="Webcam resolution WIDTHxHEIGHT (default: 1280x720)",
    )
    parser.add_argument(
        "--no-vibration", action="store_true", help="Do not report vibration patterns"
    )
    parser.add_argument(
        "--no-display",
        action="store_true",
        help="Run without a preview window",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    return parser.parse_args(argv)


def setup_config(args) -> EngineConfig:
    """Load or create engine configuration."""
    if args.config:
        print(f"Loading configuration from: {args.config}")
        return load_config_from_json(args.config)
    return create_default_config()


def setup_settings(args) -> ScanSettings:
    """Load session settings and apply command line overrides."""
    settings = load_settings_from_json(args.config) if args.config else ScanSettings()
    if args.interval is not None:
        settings.capture_interval = args.interval
    if args.no_vibration:
        settings.vibration_enabled = False
    settings.validate()
    return settings


def setup_source(args) -> CameraSource:
    """Set up the camera source based on arguments."""
    if args.webcam is not None:
        print(f"Opening webcam: {args.webcam}")
        return open_camera(args.webcam, resolution=parse_size(args.resolution))
    path = args.video or args.image
    print(f"Opening file: {path}")
    return open_video(path)


def setup_detector(args) -> ObjectDetector:
    """Load the object detection model; fails fast if it is unavailable."""
    detector_map = {
        "yolo_nano": DetectorType.YOLO_NANO,
        "mobilenet_ssd": DetectorType.MOBILENET_SSD,
    }
    return ObjectDetector(
        detector_type=detector_map[args.detector],
        model_dir=args.model_dir,
        download=not args.no_download,
    )


def print_result(result: DetectionResult) -> None:
    marker = "!" if result.is_warning else "-"
    print(f"[{marker}] {result.description} (confidence {result.confidence:.2f})")


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("=" * 60)
    print("  VisionBridge Surroundings Assistant")
    print("=" * 60)
    print()

    try:
        config = setup_config(args)
        settings = setup_settings(args)
        source = setup_source(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    if not settings.continuous_mode and args.no_display and not source.is_still_image:
        print("Error: Manual capture needs the preview window (press SPACE) or --image")
        sys.exit(1)

    try:
        detector = setup_detector(args)
    except ModelNotLoadedError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if not source.open():
        print("Error: Could not open camera source")
        sys.exit(1)

    print(f"Detector: {args.detector}")
    if settings.continuous_mode:
        print(f"Interval: {settings.capture_interval:.1f}s")
    else:
        print("Manual mode: press SPACE to capture, 'q' to quit")
    print()

    def on_result(result: DetectionResult) -> None:
        print_result(result)
        if not args.no_display and session.last_image is not None:
            cv2.imshow("VisionBridge", render_preview(session.last_image, result))
            if cv2.waitKey(1) & 0xFF == ord("q"):
                session.stop()

    def on_warning(pattern) -> None:
        print(f"    vibrate {list(pattern)}")

    def manual_trigger(frame: CameraFrame) -> bool:
        # Live preview; keeps the latest description on screen
        preview = frame.image
        if session.last_result is not None:
            preview = render_preview(frame.image, session.last_result)
        cv2.imshow("VisionBridge", preview)

        delay = 1 if isinstance(source.source, int) else max(1, int(1000 / (source.fps or 30.0)))
        key = cv2.waitKey(delay) & 0xFF
        if key == ord("q"):
            session.stop()
            return False
        return key == ord(" ")

    engine = PerceptionEngine(config)
    session = ScanSession(
        engine,
        detector,
        settings=settings,
        on_result=on_result,
        on_warning=on_warning,
    )

    session.start()
    captures = 0
    try:
        if settings.continuous_mode:
            captures = session.run(source)
        else:
            captures = session.run_manual(source, manual_trigger)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
    finally:
        session.stop()
        source.close()
        if not args.no_display:
            if args.image and session.last_result is not None:
                cv2.waitKey(0)
            cv2.destroyAllWindows()

    print(f"\nAnalyzed {captures} captures")
    print("Done!")


if __name__ == "__main__":
    main()
