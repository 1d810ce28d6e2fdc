# config.py
"""
Configuration constants for the optical Morse beacon.
Timing factors are expressed in Morse units (1 unit = 1200 / WPM ms).
"""

# --- SPEED ---
DEFAULT_WPM = 10
SPEED_PRESETS = {
    "slow": 5,
    "normal": 10,
    "fast": 20,
    "pro": 30
}

# --- CAMERA / FRAMES ---
FRAME_RATE = 30                  # Brightness samples per second
CAMERA_READY_TIMEOUT_S = 10.0    # Proceed anyway after this long
CAMERA_READY_POLL_S = 0.05

# --- BRIGHTNESS CALIBRATION ---
HISTORY_CAPACITY = 30            # Rolling brightness history
CALIBRATION_MIN_SAMPLES = 10     # Warm-up before threshold adapts
DEFAULT_THRESHOLD = 0.5
RANGE_FLOOR = 0.1                # Below this range, use median fallback
RANGE_FRACTION = 0.4
MEDIAN_OFFSET = 0.15
THRESHOLD_MIN = 0.1
THRESHOLD_MAX = 0.9

# --- NOISE FILTER ---
FILTER_WINDOW = 5
FILTER_MIN_SAMPLES = 3

# --- CLASSIFIER TIMING (multiples of unit) ---
MIN_SIGNAL_FACTOR = 0.3
MIN_SIGNAL_FLOOR_MS = 30.0
DOT_DASH_FACTOR = 1.8            # Static dot/dash boundary
LETTER_GAP_FACTOR = 2.5          # Between intra-letter (1u) and letter (3u) gaps
WORD_GAP_FACTOR = 5.0            # Between letter (3u) and word (7u) gaps
MAX_GAP_FACTOR = 12.0            # Longer runs mean the carrier is gone

# --- ADAPTIVE DOT/DASH LEARNER ---
LEARNER_CAPACITY = 20
LEARNER_MIN_SAMPLES = 5

# --- STABILIZER ---
STABILIZER_CONFIRMATIONS = 2

# --- FUZZY DECODER ---
FUZZY_MIN_CONFIDENCE = 0.5
FUZZY_TOP_N = 3
CONTEXT_MIN_CONFIDENCE = 0.7
MAX_LETTER_SYMBOLS = 6
AMBIGUOUS_CHAR = "?"

# --- TRANSMIT ---
TRANSMIT_COUNTDOWN_S = 3
TRACE_ON_LEVEL = 0.85            # Rendered brightness of a lit emitter
TRACE_OFF_LEVEL = 0.12

# --- PATHS ---
TRACE_INPUT_DIR = "./data/traces"
LOG_FILE = "./logs/session_log.jsonl"

# --- RECEIVE POLICY ---
RESET_ON_CARRIER_LOST = True     # Commit and reset when carrier drops mid-message
