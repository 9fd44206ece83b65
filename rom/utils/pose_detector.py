# rom/utils/pose_detector.py
import mediapipe as mp
import cv2
import numpy as np
import base64
import binascii
from typing import Dict, Optional, Any, Sequence
import logging

from rom.core.base import Point

logger = logging.getLogger("rom.pose_detector")

# MediaPipe Pose landmark indices by role name
KEYPOINT_MAPPING = {
    "nose": 0,
    "left_eye_inner": 1,
    "left_eye": 2,
    "left_eye_outer": 3,
    "right_eye_inner": 4,
    "right_eye": 5,
    "right_eye_outer": 6,
    "left_ear": 7,
    "right_ear": 8,
    "mouth_left": 9,
    "mouth_right": 10,
    "left_shoulder": 11,
    "right_shoulder": 12,
    "left_elbow": 13,
    "right_elbow": 14,
    "left_wrist": 15,
    "right_wrist": 16,
    "left_pinky": 17,
    "right_pinky": 18,
    "left_index": 19,
    "right_index": 20,
    "left_thumb": 21,
    "right_thumb": 22,
    "left_hip": 23,
    "right_hip": 24,
    "left_knee": 25,
    "right_knee": 26,
    "left_ankle": 27,
    "right_ankle": 28,
    "left_heel": 29,
    "right_heel": 30,
    "left_foot_index": 31,
    "right_foot_index": 32
}


class PoseDetector:
    """Landmark source backed by MediaPipe Pose."""

    def __init__(self,
                 static_image_mode: bool = False,
                 model_complexity: int = 1,
                 min_detection_confidence: float = 0.5,
                 min_tracking_confidence: float = 0.5):
        """
        Initialize the pose detector.

        Args:
            static_image_mode: Whether to treat input as static images
            model_complexity: Model complexity (0, 1, or 2)
            min_detection_confidence: Minimum confidence for person detection
            min_tracking_confidence: Minimum confidence for landmark tracking
        """
        self.keypoint_mapping = dict(KEYPOINT_MAPPING)
        self.frame_count = 0

        self.mp_pose = mp.solutions.pose
        self.pose = self.mp_pose.Pose(
            static_image_mode=static_image_mode,
            model_complexity=model_complexity,
            smooth_landmarks=True,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence
        )

        logger.info(f"Initialized PoseDetector with model_complexity={model_complexity}")

    @classmethod
    def from_config(cls, pose_config: Dict[str, Any]) -> 'PoseDetector':
        """Create a detector from the "pose" configuration section."""
        return cls(
            static_image_mode=pose_config.get("static_image_mode", False),
            model_complexity=pose_config.get("model_complexity", 1),
            min_detection_confidence=pose_config.get("min_detection_confidence", 0.5),
            min_tracking_confidence=pose_config.get("min_tracking_confidence", 0.5)
        )

    @staticmethod
    def landmarks_to_frame(landmarks: Optional[Sequence[Any]],
                           keypoint_mapping: Optional[Dict[str, int]] = None) -> Dict[str, Optional[Point]]:
        """
        Convert a MediaPipe landmark list into a landmark frame.

        Args:
            landmarks: Sequence of objects with normalized x, y and visibility
                (e.g. results.pose_landmarks.landmark); None when no pose was found
            keypoint_mapping: Role name to landmark index mapping

        Returns:
            Dictionary of role name to Point, None for roles without a landmark
        """
        mapping = keypoint_mapping or KEYPOINT_MAPPING
        landmarks = list(landmarks or [])

        frame = {}
        for name, idx in mapping.items():
            if idx >= len(landmarks):
                frame[name] = None
                continue
            landmark = landmarks[idx]
            frame[name] = Point(
                x=float(landmark.x),
                y=float(landmark.y),
                visibility=float(getattr(landmark, "visibility", 1.0))
            )
        return frame

    @staticmethod
    def decode_image(data: str) -> Optional[np.ndarray]:
        """
        Decode a base64 image (optionally a data URL such as
        "data:image/jpeg;base64,...") into a BGR frame.

        Returns:
            BGR image, or None when the payload is not a decodable image
        """
        if data.startswith("data:"):
            data = data.split(",", 1)[-1]

        try:
            image_data = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            return None

        nparr = np.frombuffer(image_data, np.uint8)
        if nparr.size == 0:
            return None

        frame = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
        if frame is None or frame.size == 0:
            return None
        return frame

    def find_landmarks(self, frame: np.ndarray) -> Dict[str, Optional[Point]]:
        """
        Detect pose landmarks in a BGR video frame.

        Args:
            frame: Input video frame (BGR, as read by OpenCV)

        Returns:
            Landmark frame; every role maps to None when no pose is detected
        """
        self.frame_count += 1

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        results = self.pose.process(rgb_frame)

        if not results.pose_landmarks:
            logger.debug(f"No pose detected in frame {self.frame_count}")
            return self.landmarks_to_frame(None, self.keypoint_mapping)

        return self.landmarks_to_frame(results.pose_landmarks.landmark, self.keypoint_mapping)

    def close(self) -> None:
        self.pose.close()
