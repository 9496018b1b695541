"""
Object Detection Module
=======================

Wraps the neural object detectors that feed the perception engine. The
detectors only produce raw (class, confidence, bounding box) tuples; all
thresholding by lighting, stabilization and distance estimation happens in
the engine.

A detector that cannot load its model fails at construction time with
ModelNotLoadedError rather than on every frame.

References:
- OpenCV DNN: https://docs.opencv.org/4.x/d2/d58/tutorial_table_of_content_dnn.html
- MobileNet-SSD: https://arxiv.org/abs/1704.04861
- YOLOv8: https://docs.ultralytics.com/
- ONNX Runtime: https://onnxruntime.ai/docs/api/python/
"""

import logging
import urllib.request
from enum import Enum
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np

from .data_model import BoundingBox, RawDetection

logger = logging.getLogger(__name__)

try:
    import onnxruntime as ort
    ONNX_AVAILABLE = True
except ImportError:
    ort = None
    ONNX_AVAILABLE = False


class DetectorType(Enum):
    """
    Available neural detection backends.

    MOBILENET_SSD: MobileNet-SSD via OpenCV DNN - PASCAL VOC classes
    YOLO_NANO: YOLOv8n via ONNX Runtime - COCO classes, best accuracy/speed
    """
    MOBILENET_SSD = "mobilenet_ssd"
    YOLO_NANO = "yolo_nano"


class ModelNotLoadedError(RuntimeError):
    """Raised when a detector is created but its model cannot be loaded."""


# Minimum file size in bytes to consider a model file valid
MIN_MODEL_SIZE_BYTES = 1000

# Pre-filter applied by the detector itself; the engine applies the
# lighting-dependent threshold afterwards, so this stays permissive
DEFAULT_CONFIDENCE_THRESHOLD = 0.25
DEFAULT_NMS_THRESHOLD = 0.45

DEFAULT_MODEL_DIR = Path(__file__).parent.parent / "models"

MOBILENET_BASE_URL = "https://raw.githubusercontent.com/djmv/MobilNet_SSD_opencv/master"
YOLO_MODEL_URL = "https://github.com/ultralytics/assets/releases/download/v8.3.0/yolov8n.onnx"

# PASCAL VOC classes of MobileNet-SSD (index 0 is background)
MOBILENET_CLASSES = [
    "background", "aeroplane", "bicycle", "bird", "boat",
    "bottle", "bus", "car", "cat", "chair", "cow", "diningtable",
    "dog", "horse", "motorbike", "person", "pottedplant", "sheep",
    "sofa", "train", "tvmonitor"
]

# COCO classes of YOLOv8 (80 classes)
COCO_CLASSES = [
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck",
    "boat", "traffic light", "fire hydrant", "stop sign", "parking meter", "bench",
    "bird", "cat", "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra",
    "giraffe", "backpack", "umbrella", "handbag", "tie", "suitcase", "frisbee",
    "skis", "snowboard", "sports ball", "kite", "baseball bat", "baseball glove",
    "skateboard", "surfboard", "tennis racket", "bottle", "wine glass", "cup",
    "fork", "knife", "spoon", "bowl", "banana", "apple", "sandwich", "orange",
    "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair", "couch",
    "potted plant", "bed", "dining table", "toilet", "tv", "laptop", "mouse",
    "remote", "keyboard", "cell phone", "microwave", "oven", "toaster", "sink",
    "refrigerator", "book", "clock", "vase", "scissors", "teddy bear", "hair drier",
    "toothbrush"
]


def _model_file_valid(path: Path) -> bool:
    return path.exists() and path.stat().st_size > MIN_MODEL_SIZE_BYTES


def _download(url: str, destination: Path) -> None:
    logger.info("Downloading %s", url)
    try:
        urllib.request.urlretrieve(url, str(destination))
    except Exception as e:
        raise ModelNotLoadedError(f"Could not download {url}: {e}") from e


class ObjectDetector:
    """
    Neural object detector producing RawDetection lists.

    Features:
    - MobileNet-SSD (OpenCV DNN) or YOLOv8n (ONNX Runtime) backends
    - Optional model download into the model directory
    - Non-maximum suppression for YOLO output

    Example:
        detector = ObjectDetector(DetectorType.YOLO_NANO)
        detections = detector.detect(frame)
    """

    def __init__(
        self,
        detector_type: DetectorType = DetectorType.YOLO_NANO,
        model_dir: Optional[Path] = None,
        download: bool = True,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        nms_threshold: float = DEFAULT_NMS_THRESHOLD
    ):
        """
        Initialize and load the detector model.

        Args:
            detector_type: Detection backend
            model_dir: Directory holding model files (default: ./models)
            download: Download missing model files
            confidence_threshold: Pre-filter on model scores
            nms_threshold: IoU threshold for non-maximum suppression

        Raises:
            ModelNotLoadedError: If the model cannot be found, downloaded or loaded
        """
        self.detector_type = detector_type
        self.model_dir = Path(model_dir) if model_dir is not None else DEFAULT_MODEL_DIR
        self.download = download
        self.confidence_threshold = confidence_threshold
        self.nms_threshold = nms_threshold

        self._mobilenet_net: Optional[cv2.dnn.Net] = None
        self._yolo_session: Optional[object] = None
        self.classes: List[str] = []

        if detector_type == DetectorType.MOBILENET_SSD:
            self._init_mobilenet_ssd()
        elif detector_type == DetectorType.YOLO_NANO:
            self._init_yolo_nano()
        else:
            raise ModelNotLoadedError(f"Unsupported detector type: {detector_type}")

    def _ensure_model_file(self, path: Path, url: str) -> None:
        if _model_file_valid(path):
            return
        if not self.download:
            raise ModelNotLoadedError(f"Model file not found: {path}")

        self.model_dir.mkdir(parents=True, exist_ok=True)
        _download(url, path)
        if not _model_file_valid(path):
            raise ModelNotLoadedError(f"Downloaded model file is invalid: {path}")

    def _init_mobilenet_ssd(self) -> None:
        """
        Load MobileNet-SSD (Caffe) through OpenCV DNN.

        Speed: ~30-50ms per frame on CPU
        """
        prototxt_path = self.model_dir / "MobileNetSSD_deploy.prototxt"
        caffemodel_path = self.model_dir / "MobileNetSSD_deploy.caffemodel"

        if not prototxt_path.exists():
            if not self.download:
                raise ModelNotLoadedError(f"Model file not found: {prototxt_path}")
            self.model_dir.mkdir(parents=True, exist_ok=True)
            _download(f"{MOBILENET_BASE_URL}/MobileNetSSD_deploy.prototxt", prototxt_path)
        self._ensure_model_file(
            caffemodel_path, f"{MOBILENET_BASE_URL}/MobileNetSSD_deploy.caffemodel"
        )

        try:
            net = cv2.dnn.readNetFromCaffe(str(prototxt_path), str(caffemodel_path))
        except cv2.error as e:
            raise ModelNotLoadedError(f"Failed to load MobileNet-SSD: {e}") from e

        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)
        self._mobilenet_net = net
        self.classes = list(MOBILENET_CLASSES)
        logger.info("MobileNet-SSD loaded from %s", caffemodel_path)

    def _init_yolo_nano(self) -> None:
        """
        Load YOLOv8n through ONNX Runtime.

        Speed: ~20-40ms per frame on CPU
        """
        if not ONNX_AVAILABLE:
            raise ModelNotLoadedError(
                "ONNX Runtime not available. Install with: pip install onnxruntime"
            )

        model_path = self.model_dir / "yolov8n.onnx"
        self._ensure_model_file(model_path, YOLO_MODEL_URL)

        try:
            session = ort.InferenceSession(
                str(model_path),
                providers=['CPUExecutionProvider']
            )
        except Exception as e:
            raise ModelNotLoadedError(f"Failed to load YOLOv8n model: {e}") from e

        self._yolo_session = session
        self._yolo_input_name = session.get_inputs()[0].name
        self.classes = list(COCO_CLASSES)
        logger.info("YOLOv8n loaded from %s", model_path)

    def detect(self, image: np.ndarray) -> List[RawDetection]:
        """
        Detect objects in the image.

        Args:
            image: Input image (BGR format)

        Returns:
            Raw detections in model output order
        """
        if self.detector_type == DetectorType.MOBILENET_SSD:
            return self._detect_mobilenet_ssd(image)
        return self._detect_yolo_nano(image)

    def _detect_mobilenet_ssd(self, image: np.ndarray) -> List[RawDetection]:
        h, w = image.shape[:2]

        # 300x300 is the MobileNet-SSD input size
        blob = cv2.dnn.blobFromImage(
            image,
            scalefactor=0.007843,  # 1/127.5
            size=(300, 300),
            mean=(127.5, 127.5, 127.5),
            swapRB=False,
            crop=False
        )

        self._mobilenet_net.setInput(blob)
        output = self._mobilenet_net.forward()
        return parse_ssd_output(output, self.classes, w, h, self.confidence_threshold)

    def _detect_yolo_nano(self, image: np.ndarray) -> List[RawDetection]:
        h, w = image.shape[:2]

        # YOLOv8 expects a letterboxed 640x640 input
        input_size = 640
        scale = min(input_size / w, input_size / h)
        new_w = int(w * scale)
        new_h = int(h * scale)

        resized = cv2.resize(image, (new_w, new_h))
        padded = np.zeros((input_size, input_size, 3), dtype=np.uint8)
        pad_x = (input_size - new_w) // 2
        pad_y = (input_size - new_h) // 2
        padded[pad_y:pad_y + new_h, pad_x:pad_x + new_w] = resized

        # BGR to RGB, [0, 1], NCHW
        input_data = cv2.cvtColor(padded, cv2.COLOR_BGR2RGB)
        input_data = input_data.astype(np.float32) / 255.0
        input_data = np.transpose(input_data, (2, 0, 1))
        input_data = np.expand_dims(input_data, axis=0)

        outputs = self._yolo_session.run(None, {self._yolo_input_name: input_data})
        return parse_yolo_output(
            outputs[0], self.classes, w, h, scale, pad_x, pad_y,
            self.confidence_threshold, self.nms_threshold
        )


def parse_ssd_output(
    output: np.ndarray,
    classes: List[str],
    image_width: int,
    image_height: int,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
) -> List[RawDetection]:
    """
    Decode SSD output of shape [1, 1, N, 7].

    Each row is (image_id, class_id, confidence, x1, y1, x2, y2) with
    normalized corner coordinates.
    """
    detections = []
    for i in range(output.shape[2]):
        confidence = float(output[0, 0, i, 2])
        if confidence < confidence_threshold:
            continue

        class_id = int(output[0, 0, i, 1])
        # Skip background and out-of-range ids
        if class_id <= 0 or class_id >= len(classes):
            continue

        box = output[0, 0, i, 3:7] * np.array([image_width, image_height, image_width, image_height])
        x1, y1, x2, y2 = box.astype(int)
        x1, y1 = max(0, x1), max(0, y1)
        x2, y2 = min(image_width, x2), min(image_height, y2)
        if x2 <= x1 or y2 <= y1:
            continue

        detections.append(RawDetection(
            class_name=classes[class_id],
            confidence=confidence,
            bbox=BoundingBox(float(x1), float(y1), float(x2 - x1), float(y2 - y1))
        ))

    return detections


def parse_yolo_output(
    output: np.ndarray,
    classes: List[str],
    image_width: int,
    image_height: int,
    scale: float = 1.0,
    pad_x: int = 0,
    pad_y: int = 0,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    nms_threshold: float = DEFAULT_NMS_THRESHOLD
) -> List[RawDetection]:
    """
    Decode YOLOv8 output of shape [1, 4 + num_classes, num_anchors].

    Boxes are (center_x, center_y, width, height) in letterboxed input
    pixels; they are mapped back to image pixels and filtered with
    non-maximum suppression.
    """
    predictions = np.transpose(output[0])

    class_scores = predictions[:, 4:]
    class_ids = np.argmax(class_scores, axis=1)
    confidences = class_scores[np.arange(len(class_ids)), class_ids]
    keep = confidences >= confidence_threshold

    boxes = []
    scores = []
    labels = []
    for (cx, cy, bw, bh), confidence, class_id in zip(
        predictions[keep, :4], confidences[keep], class_ids[keep]
    ):
        cx = (cx - pad_x) / scale
        cy = (cy - pad_y) / scale
        bw = bw / scale
        bh = bh / scale

        x1 = int(max(0, min(cx - bw / 2, image_width)))
        y1 = int(max(0, min(cy - bh / 2, image_height)))
        box_w = int(max(1, min(bw, image_width - x1)))
        box_h = int(max(1, min(bh, image_height - y1)))

        boxes.append([x1, y1, box_w, box_h])
        scores.append(float(confidence))
        labels.append(int(class_id))

    if not boxes:
        return []

    indices = cv2.dnn.NMSBoxes(boxes, scores, confidence_threshold, nms_threshold)

    detections = []
    # Older OpenCV versions return nested index arrays
    for i in np.array(indices).flatten():
        x, y, bw, bh = boxes[i]
        label_id = labels[i]
        name = classes[label_id] if label_id < len(classes) else "object"
        detections.append(RawDetection(
            class_name=name,
            confidence=scores[i],
            bbox=BoundingBox(float(x), float(y), float(bw), float(bh))
        ))

    return detections
