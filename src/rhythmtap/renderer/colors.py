"""Color palette (colorblind-safe defaults)."""

# RGB tuples
BG = (18, 18, 24)
HUD_TEXT = (220, 220, 220)
HUD_DIM = (140, 140, 150)
BEAT_ACCENT = (245, 166, 66)
BEAT_NORMAL = (66, 135, 245)
NOTE_PERFECT = (80, 220, 100)
NOTE_GOOD = (180, 220, 80)
NOTE_MISS = (220, 60, 60)
REST_WARNING = (200, 120, 220)
