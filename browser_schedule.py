#!/usr/bin/env python3
"""
browser_schedule.py - Route URLs to a work or personal browser on a schedule

The routing core (merge, validate, is_work_time, match_override, decide) is
pure: it never reads files, never touches global state and only logs through
a logger handed to it by the caller. Config loading and the command line
front end live at the bottom of this module.
"""

from __version__ import __version__
import argparse
import logging
import os
import re
import shlex
import subprocess
import sys
from datetime import datetime
from enum import Enum, IntEnum
from pathlib import Path
from typing import NamedTuple, Optional, Tuple
from urllib.parse import urlsplit

from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

APP_NAME = "browser-schedule"
CONFIG_FILENAME = "config.toml"
LOCAL_CONFIG_FILENAME = "config.local.toml"
EXAMPLE_CONFIG_FILENAME = "config.example.toml"
LOG_LEVEL_ENV = "BROWSER_SCHEDULE_LOG_LEVEL"
OPEN_COMMAND_ENV = "BROWSER_SCHEDULE_OPEN_COMMAND"

# {browser} and {url} are substituted per argument
DEFAULT_OPEN_COMMAND = ["open", "-a", "{browser}", "{url}"]

logger = logging.getLogger("browser_schedule")


# Errors

class ConfigError(Exception):
    """Base class for configuration loading failures."""


class ConfigNotFoundError(ConfigError):
    def __init__(self, path):
        self.path = Path(path)
        super().__init__(f"Config file not found at {self.path}")


class ConfigFormatError(ConfigError):
    def __init__(self, details):
        self.details = details
        super().__init__(f"Invalid config format: {details}")


# Time and day parsing

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})", re.ASCII)


def parse_time(text):
    """Return the hour of an "H:MM"/"HH:MM" 24-hour string, or None if invalid."""
    if not isinstance(text, str):
        return None
    match = _TIME_RE.fullmatch(text)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour


class Weekday(IntEnum):
    """Day of week numbered Sunday-first, 1 (Sun) through 7 (Sat)."""

    SUN = 1
    MON = 2
    TUE = 3
    WED = 4
    THU = 5
    FRI = 6
    SAT = 7

    @property
    def short_name(self):
        return self.name.title()

    @classmethod
    def from_name(cls, name):
        """Map a canonical three-letter name ("Mon") to a Weekday, else None."""
        if not isinstance(name, str):
            return None
        return _WEEKDAYS_BY_NAME.get(name)

    @classmethod
    def from_datetime(cls, moment):
        # isoweekday() is Mon=1..Sun=7
        return cls(moment.isoweekday() % 7 + 1)


_WEEKDAYS_BY_NAME = {day.short_name: day for day in Weekday}
DAY_NAMES = ",".join(day.short_name for day in Weekday)


def day_name_to_weekday(name):
    return Weekday.from_name(name)


# Config model

class Browsers(BaseModel, frozen=True):
    """Applications used for work and personal mode."""

    work: str = "Google Chrome"
    personal: str = "Zen"


class Overrides(BaseModel, frozen=True):
    """URL substrings that pin a URL to one side regardless of the schedule."""

    personal: Optional[Tuple[str, ...]] = None
    work: Optional[Tuple[str, ...]] = None


class WorkTime(BaseModel, frozen=True):
    start: str = "9:00"
    end: str = "18:00"

    @property
    def start_hour(self):
        return parse_time(self.start)

    @property
    def end_hour(self):
        return parse_time(self.end)

    @property
    def is_night_shift(self):
        """True when the window wraps past midnight (start hour >= end hour)."""
        start, end = self.start_hour, self.end_hour
        if start is None or end is None:
            return False
        return start >= end


class WorkDays(BaseModel, frozen=True):
    start: str = "Mon"
    end: str = "Fri"

    @property
    def start_weekday(self):
        return Weekday.from_name(self.start)

    @property
    def end_weekday(self):
        return Weekday.from_name(self.end)


class _Document(BaseModel, frozen=True):
    @model_validator(mode="before")
    @classmethod
    def reject_duplicate_overrides(cls, data):
        if isinstance(data, dict) and "overrides" in data and "urls" in data:
            raise ValueError("both [overrides] and legacy [urls] are present, keep only [overrides]")
        return data

    @classmethod
    def from_dict(cls, data):
        """Build from a parsed configuration document."""
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise ConfigFormatError(str(e)) from e

    def to_dict(self):
        """Return the document shape, leaving out absent fields."""
        return self.model_dump(mode="json", exclude_none=True)


class Config(_Document):
    """Effective configuration. Immutable; build a new one with merge()."""

    browsers: Browsers = Browsers()
    # older files call this table [urls]
    overrides: Optional[Overrides] = Field(
        default=None, validation_alias=AliasChoices("overrides", "urls")
    )
    work_time: WorkTime = WorkTime()
    work_days: WorkDays = WorkDays()


class LocalConfig(_Document):
    """Sparse overlay read from config.local.toml; absent groups inherit."""

    browsers: Optional[Browsers] = None
    overrides: Optional[Overrides] = Field(
        default=None, validation_alias=AliasChoices("overrides", "urls")
    )
    work_time: Optional[WorkTime] = None
    work_days: Optional[WorkDays] = None


# Merging

def _concat(*pattern_lists):
    merged = tuple(pattern for patterns in pattern_lists if patterns for pattern in patterns)
    return merged or None


def merge(base, overlay):
    """Combine a base Config with a LocalConfig overlay into a new Config.

    browsers, work_time and work_days are taken whole from the overlay when
    it has them. Override lists are concatenated, base entries first; a side
    that ends up empty is stored as None, and so is the whole table when
    both sides are.
    """
    base_overrides = base.overrides if base.overrides is not None else Overrides()
    local_overrides = overlay.overrides if overlay.overrides is not None else Overrides()
    personal = _concat(base_overrides.personal, local_overrides.personal)
    work = _concat(base_overrides.work, local_overrides.work)
    overrides = None
    if personal is not None or work is not None:
        overrides = Overrides(personal=personal, work=work)
    return Config(
        browsers=overlay.browsers if overlay.browsers is not None else base.browsers,
        overrides=overrides,
        work_time=overlay.work_time if overlay.work_time is not None else base.work_time,
        work_days=overlay.work_days if overlay.work_days is not None else base.work_days,
    )


# Validation

class ValidationResult(NamedTuple):
    is_valid: bool
    errors: Tuple[str, ...]


def validate(config):
    """Check the schedule fields of a Config, collecting every problem found."""
    errors = []
    work_time, work_days = config.work_time, config.work_days

    if work_time.start_hour is None:
        errors.append(f"Invalid work start time: {work_time.start} (use HH:MM format)")
    if work_time.end_hour is None:
        errors.append(f"Invalid work end time: {work_time.end} (use HH:MM format)")

    start_day, end_day = work_days.start_weekday, work_days.end_weekday
    if start_day is None:
        errors.append(f"Invalid work start day: {work_days.start} (use {DAY_NAMES})")
    if end_day is None:
        errors.append(f"Invalid work end day: {work_days.end} (use {DAY_NAMES})")

    if start_day is not None and end_day is not None and start_day > end_day:
        errors.append(f"Work day range invalid: {work_days.start} is after {work_days.end}")

    return ValidationResult(not errors, tuple(errors))


# Schedule

def is_work_time(config, at=None, logger=None):
    """Return True if `at` (default: now) falls inside the work schedule.

    An invalid config is never work time. Only the hour is compared, the end
    hour is exclusive, and a start hour >= end hour wraps past midnight. The
    weekday check uses the weekday of `at` itself, so the early-morning half
    of a night shift counts against the following day.
    """
    if not validate(config).is_valid:
        return False
    if at is None:
        at = datetime.now()

    work_time, work_days = config.work_time, config.work_days
    start_hour, end_hour = work_time.start_hour, work_time.end_hour
    hour = at.hour
    weekday = Weekday.from_datetime(at)

    is_work_day = work_days.start_weekday <= weekday <= work_days.end_weekday
    if work_time.is_night_shift:
        is_work_hour = hour >= start_hour or hour < end_hour
    else:
        is_work_hour = start_hour <= hour < end_hour

    if logger is not None:
        shift_type = "night" if work_time.is_night_shift else "day"
        logger.debug(
            f"{shift_type} shift check: weekday={weekday.short_name}, "
            f"workDays={work_days.start}-{work_days.end}, hour={hour}, "
            f"workHours={work_time.start}-{work_time.end}, "
            f"isWorkDay={is_work_day}, isWorkHour={is_work_hour}"
        )
    return is_work_day and is_work_hour


# Overrides

class OverrideMatch(Enum):
    PERSONAL = "personal"
    WORK = "work"
    NO_MATCH = "no_match"


def is_valid_url(url):
    """Cheap syntactic URL check: non-empty, no whitespace/control chars, splittable."""
    if not isinstance(url, str) or not url:
        return False
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in url):
        return False
    try:
        urlsplit(url)
    except ValueError:
        return False
    return True


def match_override(url, config):
    """Check the override lists against the full URL, personal side first."""
    if not is_valid_url(url) or config.overrides is None:
        return OverrideMatch.NO_MATCH
    if any(pattern in url for pattern in config.overrides.personal or ()):
        return OverrideMatch.PERSONAL
    if any(pattern in url for pattern in config.overrides.work or ()):
        return OverrideMatch.WORK
    return OverrideMatch.NO_MATCH


# Decision

def decide(url, config, at=None, logger=None):
    """Return the name of the browser that should open `url` at time `at`."""
    match = match_override(url, config)
    if match is OverrideMatch.PERSONAL:
        browser = config.browsers.personal
    elif match is OverrideMatch.WORK:
        browser = config.browsers.work
    elif is_work_time(config, at, logger=logger):
        browser = config.browsers.work
    else:
        browser = config.browsers.personal

    if logger is not None:
        logger.debug(f"Routing decision: override={match.value}, browser={browser}")
    return browser


# Config loading

EXAMPLE_CONFIG = '''# browser-schedule configuration
# Rename this to config.toml and customize for your needs.
# Settings in config.local.toml (same layout, every table optional) are
# merged on top: tables replace the ones here, override lists are appended.

[browsers]
work = "Google Chrome"
personal = "Zen"

# URL substrings that always go to one browser, whatever the time.
# Personal overrides are checked first.
[overrides]
personal = ["reddit.com", "youtube.com"]
work = ["mycompany.atlassian.net"]

# 24-hour clock, end hour exclusive. A start later than the end
# (e.g. "22:00" to "06:00") is a night shift that wraps past midnight.
[work_time]
start = "9:00"
end = "18:00"

# Inclusive range of Sun, Mon, Tue, Wed, Thu, Fri, Sat
[work_days]
start = "Mon"
end = "Fri"
'''


def default_config_dir():
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(xdg_config_home) / APP_NAME


def read_toml(path):
    """Parse a TOML file into a dict, raising ConfigFormatError on bad syntax or encoding."""
    with open(path, "rb") as fh:
        try:
            return tomllib.load(fh)
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
            raise ConfigFormatError(f"{path}: {e}") from e


def write_example_config(config_dir):
    """Create the config directory and drop a commented example config into it."""
    config_dir = Path(config_dir)
    config_dir.mkdir(parents=True, exist_ok=True)
    example_config = config_dir / EXAMPLE_CONFIG_FILENAME
    if not example_config.exists():
        example_config.write_text(EXAMPLE_CONFIG)
        logger.info(f"Created example config: {example_config}")
        logger.info(f"Copy {example_config} to {config_dir / CONFIG_FILENAME} and customize it")
    return example_config


def load_config_strict(config_dir=None):
    """Load config.toml and merge config.local.toml, raising ConfigError on failure."""
    config_dir = Path(config_dir) if config_dir else default_config_dir()
    config_path = config_dir / CONFIG_FILENAME
    local_path = config_dir / LOCAL_CONFIG_FILENAME

    if not config_path.is_file():
        raise ConfigNotFoundError(config_path)
    config = Config.from_dict(read_toml(config_path))

    if local_path.is_file():
        try:
            overlay = LocalConfig.from_dict(read_toml(local_path))
        except ConfigFormatError as e:
            raise ConfigFormatError(f"Local config error: {e.details}") from e
        config = merge(config, overlay)
    return config


def load_config(config_dir=None):
    """Load the effective config, falling back to defaults instead of failing."""
    config_dir = Path(config_dir) if config_dir else default_config_dir()
    config_path = config_dir / CONFIG_FILENAME
    local_path = config_dir / LOCAL_CONFIG_FILENAME

    if not config_path.exists():
        if not config_dir.exists():
            write_example_config(config_dir)
        logger.debug(f"Config file not found at {config_path}, using defaults")
        return Config()

    try:
        config = Config.from_dict(read_toml(config_path))
    except (ConfigFormatError, OSError) as e:
        logger.error(f"Error parsing config file at {config_path}: {e}, using defaults")
        return Config()

    if not local_path.exists():
        logger.debug(f"Loaded config from {config_path}")
        return config

    try:
        overlay = LocalConfig.from_dict(read_toml(local_path))
    except (ConfigFormatError, OSError) as e:
        logger.error(f"Error parsing local config file at {local_path}: {e}")
        return config

    logger.debug(f"Loaded config from {config_path} and merged {local_path}")
    return merge(config, overlay)


# Logging

def setup_logging(log_level_str="INFO"):
    """Set up logging to XDG_STATE_HOME/browser-schedule/browser-schedule.log"""
    xdg_state_home = os.environ.get("XDG_STATE_HOME") or Path.home() / ".local" / "state"
    log_dir = Path(xdg_state_home) / APP_NAME
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{APP_NAME}.log"

    log_level = getattr(logging, log_level_str.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stderr),
        ],
    )
    return logger


# Launching

def build_open_command(browser, url, template=None):
    """Fill {browser} and {url} into the launcher command."""
    if template is None:
        env_template = os.environ.get(OPEN_COMMAND_ENV)
        template = shlex.split(env_template) if env_template else DEFAULT_OPEN_COMMAND
    return [arg.replace("{browser}", browser).replace("{url}", url) for arg in template]


def open_url(url, config, at=None, template=None):
    """Open `url` in the browser chosen for it. Returns a process exit status."""
    if not url.startswith(("http://", "https://")):
        print("Error: URL must start with http:// or https://", file=sys.stderr)
        return 1

    if at is None:
        at = datetime.now()
    browser = decide(url, config, at, logger=logger)
    logger.info(f"Opening {url} in {browser} ({at:%H:%M})")

    cmd = build_open_command(browser, url, template)
    try:
        result = subprocess.run(cmd, check=False)
    except OSError as e:
        logger.error(f"Error opening {url}: {e}")
        return 1

    if result.returncode != 0:
        logger.error(f"Error opening {url}: exit code {result.returncode}")
    else:
        logger.debug(f"Successfully opened {url} in {browser}")
    return result.returncode


# Command line

def show_config(config, config_dir=None, at=None, out=None):
    """Print the effective configuration and which mode is active."""
    out = out or sys.stdout
    config_dir = Path(config_dir) if config_dir else default_config_dir()
    validation = validate(config)

    def say(line):
        print(line, file=out)

    say("Current configuration:")
    say(f"  Work browser: {config.browsers.work}")
    say(f"  Personal browser: {config.browsers.personal}")
    shift_type = " (night shift)" if config.work_time.is_night_shift else ""
    say(f"  Work hours: {config.work_time.start}-{config.work_time.end}{shift_type}")
    say(f"  Work days: {config.work_days.start}-{config.work_days.end}")

    if config.overrides is not None:
        if config.overrides.personal:
            say(f"  Personal overrides: {', '.join(config.overrides.personal)}")
        if config.overrides.work:
            say(f"  Work overrides: {', '.join(config.overrides.work)}")

    say(f"  Config file: {config_dir / CONFIG_FILENAME}")
    local_path = config_dir / LOCAL_CONFIG_FILENAME
    if local_path.exists():
        say(f"  Local config: {local_path} (merged)")

    if not validation.is_valid:
        say("  Configuration errors:")
        for error in validation.errors:
            say(f"     - {error}")
        say(f"  Current: Using personal browser ({config.browsers.personal}) due to config errors")
    elif is_work_time(config, at):
        say(f"  Current: Work time - using {config.browsers.work}")
    else:
        say(f"  Current: Personal time - using {config.browsers.personal}")


def build_parser():
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Route URLs to a work or personal browser based on a schedule",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--config-dir", type=Path, help="Directory holding config.toml")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("config", help="Display current configuration and status")
    which_parser = subparsers.add_parser("which", help="Print the browser a URL would open in")
    which_parser.add_argument("url", help="URL to route")
    open_parser = subparsers.add_parser("open", help="Open a URL using the routing rules")
    open_parser.add_argument("url", help="URL to open")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else os.environ.get(LOG_LEVEL_ENV, "INFO"))

    config = load_config(args.config_dir)

    if args.command == "which":
        print(decide(args.url, config, logger=logger))
        return 0
    if args.command == "open":
        return open_url(args.url, config)

    show_config(config, args.config_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
