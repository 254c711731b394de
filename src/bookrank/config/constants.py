"""Fixed thresholds and component names."""

COMPONENT_CLI = "cli"

# Evaluation tag thresholds (rating on a 0-10 scale)
MASTERPIECE_TAG_THRESHOLD: float = 9.5
HIGHLY_PRAISED_TAG_THRESHOLD: float = 9.0
WORTH_READING_TAG_THRESHOLD: float = 8.0
