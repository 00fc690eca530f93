CATALOG_KEY = "catalog"
BILLING_KEY = "smartBillPro_data"

DEFAULT_DISCOUNT_RATE = 0.0
# tax is reset to the standard GST slab, not to zero
DEFAULT_TAX_RATE = 18.0

MIN_RATE = 0.0
MAX_RATE = 100.0

# billing screen shows only the first matches of a catalog search
CATALOG_DISPLAY_LIMIT = 7

SEED_CATALOG = (
    ("Laptop Computer", 49999.99, 25),
    ("Wireless Mouse", 1499.99, 100),
    ("USB Keyboard", 2499.99, 75),
    ('Monitor 24"', 9999.99, 50),
    ("Webcam HD", 3999.99, 30),
    ("Headphones", 4499.99, 60),
    ("USB Cable", 499.99, 200),
    ("HDD 1TB", 2999.99, 40),
    ("SSD 512GB", 6499.99, 35),
    ("RAM 16GB", 7499.99, 20),
)
