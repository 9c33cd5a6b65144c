#!/usr/bin/env python3
"""Live webcam sign recognition demo.

Requires the camera extra: pip install sign-copilot[camera]

Usage:
    python examples/demo_webcam.py [--camera 0] [--no-display] [--log signs.txt]
"""

import argparse
import sys

import cv2

from sign_copilot import HandDetector, RecognitionSession, SignLog
from sign_copilot.schema import SignResponse


def draw_overlay(frame, response: SignResponse, detections):
    """Draw the display label and the tracked wrist on the frame."""
    h, w = frame.shape[:2]
    color = (0, 255, 0) if response.phase == "confirmed" else (0, 255, 255)
    label = f"{response.recognized.label} ({response.recognized.confidence:.0%})"
    cv2.putText(frame, label, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, color, 2)

    if response.explanation is not None:
        cv2.putText(
            frame, response.explanation.meaning[:60], (10, 60),
            cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1,
        )

    for det in detections:
        wrist = det.landmarks[0]
        cv2.circle(frame, (int(wrist[0] * w), int(wrist[1] * h)), 6, color, -1)

    return frame


def main():
    parser = argparse.ArgumentParser(description="SignCopilot Webcam Demo")
    parser.add_argument("--camera", type=int, default=0, help="Camera index")
    parser.add_argument("--no-display", action="store_true", help="Run headless")
    parser.add_argument("--log", default=None, help="Write confirmed signs to this file")
    args = parser.parse_args()

    cap = cv2.VideoCapture(args.camera)
    if not cap.isOpened():
        print(f"Error: Cannot open camera {args.camera}")
        sys.exit(1)

    print("Starting SignCopilot...")
    print("Press 'q' to quit\n")

    session = RecognitionSession(auto_start=True)
    sign_log = SignLog()

    with HandDetector(max_hands=1) as detector:
        while True:
            ret, frame = cap.read()
            if not ret:
                break

            frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            detections = detector.detect(frame_rgb)
            response = session.submit(detections)

            if response.phase == "confirmed" and sign_log.add(response):
                print(f"  🤟 {response.recognized.label} ({response.recognized.confidence:.0%})")

            if not args.no_display:
                frame = draw_overlay(frame, response, detections)
                cv2.imshow("SignCopilot", frame)
                if cv2.waitKey(1) & 0xFF == ord("q"):
                    break

    cap.release()
    cv2.destroyAllWindows()
    session.stop()

    stats = session.stats
    print(f"\nProcessed {stats.frames} frames, {stats.confirmations} confirmations")
    if args.log:
        sign_log.write(args.log)
        print(f"Sign log saved to {args.log}")


if __name__ == "__main__":
    main()
