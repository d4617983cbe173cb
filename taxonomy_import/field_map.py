"""
taxonomy_import.field_map - Column layouts of the supported CSV modes.
"""

MODE_STANDARD = "standard"
MODE_CANADIAN_CITIES = "canadian_cities"
IMPORT_MODES = (MODE_STANDARD, MODE_CANADIAN_CITIES)

# Standard mode is positional: name, parent, description, then custom
# fields keyed by their header.
STANDARD_FIXED_COLUMNS = ("name", "parent", "description")

# Canadian cities export: column index → custom field name.
# Columns 1 (name) and 3 (province → parent) and the coordinate pair
# 8/9 (→ field_geolocation) are handled separately.
CITY_NAME_COL = 1
CITY_PROVINCE_COL = 3
CITY_LAT_COL = 8
CITY_LNG_COL = 9
CITY_GEO_FIELD = "field_geolocation"

CITY_FIELDS: dict[int, str] = {
    0:  "field_city_id",
    2:  "field_county",
    4:  "field_province_code",
    5:  "field_postcode_area",
    6:  "field_type",
    7:  "field_map_reference",
    10: "field_census_division",
    11: "field_area_code",
    12: "field_timezone",
}
