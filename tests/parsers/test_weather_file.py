"""Tests for hourly weather file parsing."""

import pytest

from insight_system.parsers.weather_file import (
    WeatherParseError,
    detect_format,
    parse_weather_file,
    read_weather_text,
)

PVGIS = """Latitude (decimal degrees):\t35.830
Longitude (decimal degrees):\t14.530
Elevation (m):\t40
Irradiance Time Offset (h):\t0.1
months selected for TMY:
month,year
1,2012
6,2015

time(UTC),T2m,RH,G(h),Gb(n),Gd(h),IR(h),WS10m,WD10m,SP
20120101:0000,10.0,80,0,0,0,300,3.1,200,101300
20120101:1200,14.0,70,500,700,100,320,4.0,210,101300
20150601:1200,30.0,40,900,800,120,350,2.5,90,101000
20150601:1300,26.0,45,-3,0,0,340,2.5,90,101000

T2m: 2-m air temperature (degree Celsius)
G(h): Global irradiance on the horizontal plane (W/m2)
PVGIS (c) European Union, 2001-2024
"""


def _epw_row(month: int, hour: int, temp: float, ghi: int, dni: int, dhi: int) -> str:
    fields = ["2005", str(month), "1", str(hour), "60", "?9?9", str(temp), "8.0", "70", "101500",
              "0", "0", "300", str(ghi), str(dni), str(dhi)] + ["0"] * 19
    return ",".join(fields)


EPW = "\n".join(
    ["LOCATION,Luqa,,MLT,IWEC Data,165970,35.85,14.48,1.0,91.0"]
    + [f"HEADER LINE {i}" for i in range(7)]
    + [
        _epw_row(1, 12, 15.0, 400, 600, 80),
        _epw_row(1, 13, 17.0, 600, 700, 90),
        _epw_row(8, 12, 31.0, 1000, 900, 100),
    ]
)

CSV = """# latitude: -31.5
# longitude = 121.47
timestamp,ghi,dni,dhi,temp_air
2023-01-01T12:00,400,600,100,25
2023-07-01 12:00,700,800,90,12
"""


class TestDetectFormat:
    def test_epw_by_extension(self):
        assert detect_format("whatever", "site.EPW") == "epw"

    def test_epw_by_header(self):
        assert detect_format(EPW) == "epw"

    def test_pvgis(self):
        assert detect_format(PVGIS, "tmy.csv") == "pvgis"

    def test_generic_csv(self):
        assert detect_format(CSV, "hourly.csv") == "csv"


class TestPvgis:
    def test_aggregates(self):
        data = parse_weather_file(PVGIS, "tmy_35.830_14.530.csv")

        assert data.format == "pvgis"
        assert data.location.latitude == pytest.approx(35.83)
        assert data.location.longitude == pytest.approx(14.53)
        assert data.location.elevation_m == pytest.approx(40)
        assert len(data.monthly) == 12
        january, june = data.monthly[0], data.monthly[5]
        assert january.ghi_kwh_m2 == 0.5
        assert january.dni_kwh_m2 == 0.7
        assert january.temperature_avg_c == 12.0
        # negative night-time readings do not subtract irradiation
        assert june.ghi_kwh_m2 == 0.9
        assert june.temperature_avg_c == 28.0
        assert data.monthly[2].temperature_avg_c is None
        assert data.annual.ghi_total_kwh_m2 == 1.4
        assert data.annual.hours == 4
        assert data.annual.temperature_avg_c == 20.0


class TestEpw:
    def test_header_and_records(self):
        data = parse_weather_file(EPW, "MLT_Luqa.epw")

        assert data.format == "epw"
        assert data.location.name == "Luqa, MLT"
        assert data.location.latitude == 35.85
        assert data.location.longitude == 14.48
        assert data.location.elevation_m == 91.0
        assert data.monthly[0].ghi_kwh_m2 == 1.0
        assert data.monthly[0].dhi_kwh_m2 == pytest.approx(0.2)
        assert data.monthly[0].temperature_avg_c == 16.0
        assert data.monthly[7].dni_kwh_m2 == 0.9
        assert data.annual.ghi_total_kwh_m2 == 2.0
        assert data.annual.hours == 3

    def test_missing_location_header(self):
        with pytest.raises(WeatherParseError, match="LOCATION"):
            parse_weather_file("not,a,weather,file", "broken.epw")


class TestGenericCsv:
    def test_timestamps_and_comment_metadata(self):
        data = parse_weather_file(CSV, "hourly.csv")

        assert data.format == "csv"
        assert data.location.latitude == -31.5
        assert data.location.longitude == 121.47
        assert data.monthly[0].ghi_kwh_m2 == 0.4
        assert data.monthly[6].ghi_kwh_m2 == 0.7
        assert data.monthly[6].temperature_avg_c == 12.0

    def test_month_column(self):
        content = "month,GHI\n3,250\n3,250\n11,100\n"
        data = parse_weather_file(content)

        assert data.monthly[2].ghi_kwh_m2 == 0.5
        assert data.monthly[10].ghi_kwh_m2 == 0.1
        assert data.monthly[2].temperature_avg_c is None

    def test_hour_index_fallback(self):
        content = "ghi\n" + "\n".join(["1000"] * 745)
        data = parse_weather_file(content)

        assert data.monthly[0].ghi_kwh_m2 == 744.0
        assert data.monthly[1].ghi_kwh_m2 == 1.0
        assert data.annual.hours == 745

    def test_bom_is_ignored(self):
        data = parse_weather_file("\ufeff" + CSV)
        assert data.location.latitude == -31.5


class TestErrors:
    @pytest.mark.parametrize("content", ["", "   \n  "])
    def test_empty(self, content):
        with pytest.raises(WeatherParseError, match="empty"):
            parse_weather_file(content)

    def test_no_ghi_column(self):
        with pytest.raises(WeatherParseError, match="no GHI column"):
            parse_weather_file("time,wind_speed\n2023-01-01,4.2\n")

    def test_header_without_records(self):
        with pytest.raises(WeatherParseError, match="no hourly records"):
            parse_weather_file("timestamp,ghi\n")


class TestReadWeatherText:
    def test_utf8(self):
        assert read_weather_text("Malta – Ħal Far".encode("utf-8")) == "Malta – Ħal Far"

    def test_latin1_fallback(self):
        assert read_weather_text(b"S\xe3o Paulo") == "São Paulo"
