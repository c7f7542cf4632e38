"""Parsers for uploaded data files."""

from insight_system.parsers.weather_file import (
    WeatherParseError,
    detect_format,
    parse_weather_file,
    read_weather_text,
)

__all__ = ["WeatherParseError", "detect_format", "parse_weather_file", "read_weather_text"]
