"""Per-face attribute classifiers (emotion, age, gender) and their shared scoring."""
