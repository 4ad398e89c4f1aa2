"""Feed test fixture builder - creates in-memory ZIP files for testing."""

from __future__ import annotations

import io
import struct
import zipfile

# Small but complete feed: every recognised file, columns in layout order.
#
# Service WD runs Monday-Friday through 2024 but is removed on 2024-01-01;
# service HOL has no calendar row and is added on 2024-01-01 only.

AGENCY_TXT = """\
agency_name,agency_url,agency_timezone,agency_lang,agency_phone
Harbour Transit,https://transit.example.org,America/Vancouver,en,555-0100
"""

ROUTES_TXT = """\
route_id,route_short_name,route_long_name,route_desc,route_type,route_url
R1,10,Harbour Line,Waterfront to Uptown,3,
R2,N5,Night Owl,,3,
"""

CALENDAR_TXT = """\
service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date
WD,1,1,1,1,1,0,0,20240101,20241231
"""

CALENDAR_DATES_TXT = """\
service_id,date,exception_type
WD,20240101,2
HOL,20240101,1
"""

STOPS_TXT = """\
stop_id,stop_code,stop_name,stop_desc,stop_lat,stop_lon,zone_id,stop_url,location_type
S1,1001,Waterfront,,49.285658,-123.111535,Z1,,0
S2,1002,Burrard,,49.285511,-123.120514,Z1,,0
S3,1003,Granville,,49.283275,-123.116131,Z1,,0
S4,1004,Stadium,,49.279403,-123.109741,Z2,,0
S5,1005,Main Street,,49.273000,-123.100500,Z2,,0
"""

SHAPES_TXT = """\
shape_id,shape_pt_lat,shape_pt_lon,shape_pt_sequence
SH1,49.285658,-123.111535,1
SH1,49.285600,-123.116000,2
SH1,49.285511,-123.120514,3
SH1,49.283275,-123.116131,4
SH2,49.283275,-123.116131,1
SH2,49.285511,-123.120514,2
SH2,49.285658,-123.111535,3
"""

TRIPS_TXT = """\
route_id,service_id,trip_id,trip_headsign,direction_id,block_id,shape_id
R1,WD,T1,Uptown,0,B1,SH1
R1,WD,T2,Waterfront,1,B2,SH2
R2,HOL,T3,Main Street,0,B3,
"""

# T1 rows are deliberately out of arrival order in the file
STOP_TIMES_TXT = """\
trip_id,arrival_time,departure_time,stop_id,stop_sequence,pickup_type,drop_off_type
T1,06:35:00,06:35:30,S2,2,0,0
T1,06:30:00,06:30:00,S1,1,0,0
T1,06:40:00,06:40:00,S3,3,0,0
T2,07:00:00,07:00:00,S3,1,0,0
T2,07:05:00,07:05:00,S2,2,0,0
T2,07:10:00,07:10:00,S1,3,0,0
T3,25:01:30,25:01:30,S4,1,0,0
T3,25:10:00,25:10:00,S5,2,0,0
"""

EXPECTED_COUNTS = {
    "agency": 1,
    "routes": 2,
    "calendar": 1,
    "calendar_dates": 2,
    "stops": 5,
    "shapes": 7,
    "trips": 3,
    "stop_times": 8,
}


def build_feed_zip(
    stops: str = STOPS_TXT,
    routes: str = ROUTES_TXT,
    trips: str = TRIPS_TXT,
    stop_times: str = STOP_TIMES_TXT,
    extra_files: dict[str, str] | None = None,
    exclude_files: set[str] | None = None,
    folder: str = "",
) -> bytes:
    """Build an in-memory feed ZIP file.

    Args:
        stops: Content for stops.txt.
        routes: Content for routes.txt.
        trips: Content for trips.txt.
        stop_times: Content for stop_times.txt.
        extra_files: Additional or replacement files to include.
        exclude_files: Files to exclude (e.g. {"stops.txt"}).
        folder: Optional directory prefix for every member.

    Returns:
        bytes of the ZIP file.
    """
    buf = io.BytesIO()
    exclude = exclude_files or set()

    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        files = {
            "agency.txt": AGENCY_TXT,
            "routes.txt": routes,
            "calendar.txt": CALENDAR_TXT,
            "calendar_dates.txt": CALENDAR_DATES_TXT,
            "stops.txt": stops,
            "shapes.txt": SHAPES_TXT,
            "trips.txt": trips,
            "stop_times.txt": stop_times,
        }
        if extra_files:
            files.update(extra_files)

        for name, content in files.items():
            if name not in exclude:
                zf.writestr(f"{folder}{name}", content)

    return buf.getvalue()


def build_invalid_zip() -> bytes:
    """Build bytes that are not a valid ZIP."""
    return b"This is not a ZIP file at all."


def corrupt_member(data: bytes, member: str) -> bytes:
    """Break the deflate stream of one member, leaving the ZIP structure intact.

    The first byte of compressed data becomes a final block of the reserved
    type, so reading the member raises ``zlib.error``.
    """
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        info = zf.getinfo(member)
    raw = bytearray(data)
    # Local file header: 30 fixed bytes, then the name and extra field.
    name_len, extra_len = struct.unpack_from("<HH", raw, info.header_offset + 26)
    raw[info.header_offset + 30 + name_len + extra_len] = 0x07
    return bytes(raw)
