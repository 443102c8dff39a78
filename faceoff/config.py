"""Model constants.

These are empirical properties of the specific trained weights the pipeline
ships defaults for; every one of them can be overridden through the config
dataclasses.
"""

# Detector: RFB-320 style, 320x240 input, 4 feature maps.
DETECTOR_INPUT_SIZE = (320, 240)  # (w, h)
DETECTOR_STRIDES = [8, 16, 32, 64]
DETECTOR_BOX_SIZES = [
    [10.0, 16.0, 24.0],
    [32.0, 48.0],
    [64.0, 96.0],
    [128.0, 192.0, 256.0],
]
# (center_x, center_y, width, height) variances used when the model was trained.
DETECTOR_VARIANCES = (0.1, 0.1, 0.2, 0.2)
# (v - 127) / 128 expressed in the 0-1 "standardize" form.
DETECTOR_MEAN = (127.0 / 255.0, 127.0 / 255.0, 127.0 / 255.0)
DETECTOR_STD = (128.0 / 255.0, 128.0 / 255.0, 128.0 / 255.0)
DETECTOR_IOU_THRESHOLD = 0.3
DETECTOR_MIN_BOX_SIZE = 1.0

# Caffe-style mean for the age/gender nets (B, G, R).
CAFFE_MEAN_BGR = (104.0, 117.0, 123.0)

IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)

AGE_INPUT_SIZE = (224, 224)
# Representative age of each bucket the age net was trained on.
AGE_BUCKETS = [
    1.0,  # 0-2
    5.0,  # 3-7
    12.0,  # 8-16
    23.0,  # 17-29
    35.0,  # 30-40
    45.0,  # 41-49
    58.0,  # 50-66
    75.0,  # 67+
]
AGE_CORRECTION_THRESHOLD = 20.0
AGE_CORRECTION_FACTOR = 1.15

GENDER_INPUT_SIZE = (224, 224)
# Order matches the model's output, not alphabetical.
GENDER_LABELS = ["Male", "Female"]

# EfficientNet emotion model: 224x224 RGB, ImageNet normalization.
EMOTION_INPUT_SIZE = (224, 224)
EMOTION_LABELS = ["angry", "contempt", "disgusted", "fear", "happy", "neutral", "sad", "surprise"]

# FER+ emotion model: 64x64 grayscale in [-1, 1].
FERPLUS_INPUT_SIZE = (64, 64)
FERPLUS_LABELS = ["neutral", "happiness", "surprise", "sadness", "anger", "disgust", "fear", "contempt"]

EMOTION_CROP_PADDING = 1.4
DEFAULT_CONFIDENCE_THRESHOLD = 0.7

# Candidate system fonts for overlay labels (macOS/Windows/Linux).
FONT_LIST = [
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "/Library/Fonts/Arial Unicode.ttf",
    "C:\\Windows\\Fonts\\arial.ttf",
    "C:\\Windows\\Fonts\\segoeui.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
]
