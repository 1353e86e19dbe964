UP = '#22c55e'
DOWN = '#ef4444'
TEXT = '#71717a'
GRID = '#27272a'

# Alpha channels for tinted fills (out of 255).
AREA_TOP_ALPHA = 0x18
AREA_BOTTOM_ALPHA = 0x02
VOLUME_ALPHA = 0x15
WICK_ALPHA = 0x80

CHART_HEIGHT = 480
VOLUME_HEIGHT_RATIO = 0.15
# Fraction of the price pane kept free above the data and below it (room for volume).
PRICE_MARGIN_TOP = 0.06
PRICE_MARGIN_BOTTOM = 0.18
