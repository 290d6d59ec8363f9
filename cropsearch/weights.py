"""
Object class importance weights.

How much each object detector class matters when framing a crop, in
[0.0, 1.0]. Classes not listed weigh 0 and are ignored by the fitness.
"""

from typing import Dict, Mapping

OBJECT_WEIGHTS: Dict[str, float] = {
    # Faces from the pose estimator and people from the object detector
    "face": 1.0,
    "person": 0.99,

    # People with their birthday cake
    "cake": 0.95,

    # Pets
    "cat": 0.9,
    "dog": 0.9,
    "teddy bear": 0.9,

    # Other animals
    "bird": 0.8,
    "horse": 0.8,
    "sheep": 0.8,
    "cow": 0.8,
    "elephant": 0.8,
    "bear": 0.8,
    "zebra": 0.8,
    "giraffe": 0.8,

    # Things people pose with
    "bicycle": 0.6,
    "car": 0.6,
    "motorcycle": 0.6,
    "boat": 0.6,
    "skis": 0.6,
    "snowboard": 0.6,
    "sports ball": 0.6,
    "kite": 0.6,
    "baseball bat": 0.6,
    "baseball glove": 0.6,
    "skateboard": 0.6,
    "surfboard": 0.6,
    "tennis racket": 0.6,
    "frisbee": 0.6,

    # Interesting but large, must not dominate
    "airplane": 0.4,
    "bus": 0.4,
    "train": 0.4,
    "truck": 0.4,
}

# Incidental items, a little better than nothing
_INCIDENTAL = (
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench",
    "backpack", "umbrella", "handbag", "tie", "suitcase", "bottle",
    "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple",
    "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut",
    "chair", "couch", "potted plant", "bed", "dining table", "toilet", "tv",
    "laptop", "mouse", "remote", "keyboard", "cell phone", "microwave",
    "oven", "toaster", "sink", "refrigerator", "book", "clock", "vase",
    "scissors", "hair drier", "toothbrush",
)
OBJECT_WEIGHTS.update({label: 0.05 for label in _INCIDENTAL})


def object_weight(label: str, weights: Mapping[str, float] = OBJECT_WEIGHTS) -> float:
    """Weight of an object class, 0.0 for unknown classes."""
    return weights.get(label, 0.0)
