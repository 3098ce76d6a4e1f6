

# Description: Find the PrivateBin instances listed in the public directory and sort them by reliability

# Version: 1.0


import asyncio
import json
import logging
import math
import sys
from collections import namedtuple
from datetime import datetime
from urllib import parse

import aiohttp
import enlighten
import timeout_decorator
from bs4 import BeautifulSoup
from fake_useragent import UserAgent

import pb_constants


# One row of the directory. Never modified after parsing
Instance = namedtuple("Instance", ["version", "address", "uptime"])


class Settings:
    """
    Tunables for one run. Defaults come from pb_constants
    """

    def __init__(
        self,
        concurrency=pb_constants.CONCURRENCY,
        good_uptime=pb_constants.GOOD_UPTIME,
        site_timeout=pb_constants.SITE_TIMEOUT,
        suspicious_phrases=pb_constants.SUSPICIOUS_PHRASES,
        progress_every=pb_constants.PROGRESS_EVERY,
        max_redirects=pb_constants.MAX_REDIRECTS,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1: {concurrency}")
        if progress_every < 1:
            raise ValueError(f"progress_every must be at least 1: {progress_every}")
        self.concurrency = concurrency
        self.good_uptime = good_uptime
        self.site_timeout = site_timeout
        self.suspicious_phrases = tuple(phrase.lower() for phrase in suspicious_phrases)
        self.progress_every = progress_every
        self.max_redirects = max_redirects

    def __repr__(self):
        return f"Settings({self.concurrency=} {self.good_uptime=} {self.site_timeout=} {self.max_redirects=})"


class ScraperError(Exception):
    """
    A request for one url could not produce a usable page
    """

    def __init__(self, url, err_code, err_desc):
        self.url = url
        self.err_code = err_code
        self.err_desc = err_desc
        super().__init__(f"{err_code}: {err_desc} {url}")


class FetchError(ScraperError):
    """
    Network error, timeout, non 200 status, or an unreadable body
    """


class ParseError(ScraperError):
    """
    The body could not be parsed as HTML
    """

    def __init__(self, url, err_desc):
        super().__init__(url, "pb_error 5", err_desc)


class Outcome:
    """
    The result of verifying one instance.
    A probe that failed has the FAILED disposition and carries the error.
    A probe that succeeded has one of the classifier dispositions and no error.
    """

    def __init__(self, instance, disposition, error=None):
        self.instance = instance
        self.disposition = disposition
        self.error = error

    @classmethod
    def failure(cls, instance, error):
        return cls(instance, pb_constants.FAILED, error)

    @property
    def failed(self):
        return self.error is not None

    def __repr__(self):
        return f"Outcome({self.instance.address} {self.disposition} {self.error!r})"


class Report:
    """
    The three buckets written to the output file
    """

    def __init__(self, reliable=None, low_uptime=None, unreliable=None):
        self.reliable = reliable or []
        self.low_uptime = low_uptime or []
        self.unreliable = unreliable or []

    def bucket(self, disposition):
        if disposition not in pb_constants.REPORT_BUCKETS:
            raise KeyError(disposition)
        return getattr(self, disposition)

    def to_dict(self):
        return {
            name: [dict(instance._asdict()) for instance in self.bucket(name)]
            for name in pb_constants.REPORT_BUCKETS
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            *(
                [Instance(**row) for row in data.get(name) or []]
                for name in pb_constants.REPORT_BUCKETS
            )
        )

    def __len__(self):
        return sum(len(self.bucket(name)) for name in pb_constants.REPORT_BUCKETS)


class HeaderGenerator:
    """
    Make browser-like request headers.
    The user agent data is loaded once and shared by all tasks.
    """

    @timeout_decorator.timeout(pb_constants.UA_INIT_TIMEOUT)
    def __init__(self):
        self.ua = UserAgent(browsers=["Chrome", "Firefox", "Edge"], platforms=["desktop"])
        logger.debug(f"user agent data loaded")

    def get_headers(self, url):
        """
        Return headers for a top level navigation to url
        """
        user_agent = self.ua.random
        headers = {
            "User-Agent": user_agent,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Sec-Fetch-User": "?1",
        }

        # Firefox and Chromium advertise different Accept values
        if "Firefox/" in user_agent:
            headers["Accept"] = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
        else:
            headers["Accept"] = (
                "text/html,application/xhtml+xml,application/xml;q=0.9,"
                "image/avif,image/webp,image/apng,*/*;q=0.8"
            )

        if parse.urlsplit(url).scheme == "http":
            del headers["Upgrade-Insecure-Requests"]

        return headers


def create_session(settings):
    """
    The aiohttp session shared by every task. Must be called inside the event loop
    """
    connector = aiohttp.TCPConnector(
        limit=pb_constants.CONN_LIMIT, limit_per_host=pb_constants.CONN_LIMIT_PER_HOST
    )
    timeout = aiohttp.ClientTimeout(total=settings.site_timeout)
    return aiohttp.ClientSession(timeout=timeout, connector=connector)


async def fetch_page(session, header_gen, url, settings):
    """
    Request a url and return the parsed page.
    Anything other than a readable 200 response raises FetchError.
    """
    logger.debug(f"begin req {url}")
    try:
        async with session.get(
            url,
            headers=header_gen.get_headers(url),
            allow_redirects=True,
            max_redirects=settings.max_redirects,
            timeout=aiohttp.ClientTimeout(total=settings.site_timeout),
        ) as resp:
            if resp.status != 200:
                raise FetchError(url, "pb_error 2", f"{resp.status} {resp.reason}")
            html = await resp.text()

    except asyncio.TimeoutError:
        raise FetchError(url, "pb_error 1", "Timeout") from None

    except aiohttp.ClientPayloadError as errex:
        raise FetchError(url, "pb_error 4", str(errex)) from errex

    except (UnicodeDecodeError, LookupError) as errex:
        raise FetchError(url, "pb_error 4", repr(errex)) from errex

    except aiohttp.ClientError as errex:
        raise FetchError(url, "pb_error 3", str(errex) or repr(errex)) from errex

    logger.debug(f"end req {url}")
    return parse_html(url, html)


def parse_html(url, html):
    try:
        return BeautifulSoup(html, "html5lib")
    except Exception as errex:
        raise ParseError(url, repr(errex)) from errex


def get_version(heading):
    """
    Ex: "Version 1.7.1" -> "1.7.1"
    """
    version = heading.get_text().strip()
    if version.startswith(pb_constants.VERSION_PREFIX):
        version = version[len(pb_constants.VERSION_PREFIX) :]
    return version


def get_uptime(cell):
    """
    Return the uptime percentage as a float, or None for placeholders like "n/a" or "NaN"
    """
    uptime_s = cell.get_text().strip().replace("%", "").strip()
    try:
        uptime = float(uptime_s)
    except ValueError:
        return None
    if not math.isfinite(uptime):
        return None
    return uptime


def parse_directory(soup):
    """
    Collect every instance with a numeric uptime.
    The directory is a series of version headings, each followed by a table of instances.
    """
    instances = []
    for heading in soup.find_all(pb_constants.VERSION_HEADING):
        version = get_version(heading)

        table = heading.find_next_sibling()
        if table is None or table.name != "table":
            logger.debug(f"No table after heading: {version}")
            continue

        for row in table.select("tbody tr"):
            cells = row.find_all("td")
            if len(cells) < pb_constants.MIN_COLUMNS:
                continue

            address = cells[pb_constants.ADDRESS_COLUMN].get_text().strip()
            uptime = get_uptime(cells[pb_constants.UPTIME_COLUMN])
            if uptime is None:
                logger.debug(f"Skipping non numeric uptime: {address}")
                continue

            instances.append(Instance(version, address, uptime))

    return instances


async def fetch_directory(session, header_gen, url, settings):
    """
    Return every candidate instance listed in the directory
    """
    logger.info(f"Fetching directory: {url}")
    soup = await fetch_page(session, header_gen, url, settings)
    instances = parse_directory(soup)
    logger.info(f"Candidates found in directory: {len(instances)}")
    return instances


def has_never_option(soup):
    """
    Return True if pastes can be kept forever
    """
    return any(
        option.get("value") == pb_constants.NEVER_OPTION
        for option in soup.select(pb_constants.EXPIRATION_OPTION_SEL)
    )


def has_suspicious_alert(soup, suspicious_phrases):
    """
    Return True if an info alert warns that pastes may be deleted
    """
    for alert in soup.select(pb_constants.ALERT_SEL):
        alert_text = alert.get_text().lower()
        if any(phrase in alert_text for phrase in suspicious_phrases):
            return True
    return False


def classify(soup, uptime, settings):
    """
    Decide the disposition of an instance from its page.
    Checks are in priority order: storage, then alerts, then uptime.
    """
    if not has_never_option(soup):
        return pb_constants.DISCARD

    if has_suspicious_alert(soup, settings.suspicious_phrases):
        return pb_constants.UNRELIABLE

    if uptime < settings.good_uptime:
        return pb_constants.LOW_UPTIME

    return pb_constants.RELIABLE


async def probe_instance(session, header_gen, instance, settings):
    """
    Request the instance page and classify it
    """
    try:
        soup = await fetch_page(session, header_gen, instance.address, settings)
    except ScraperError as errex:
        logger.warning(f"{errex.err_code}: {errex.err_desc} {instance.address}")
        return Outcome.failure(instance, errex)

    disposition = classify(soup, instance.uptime, settings)
    logger.debug(f"Classified: {instance.address} {disposition}")
    return Outcome(instance, disposition)


async def worker(session, header_gen, jobs, results, settings):
    """
    The request loop.
    Get an instance from the queue, probe it, and put exactly one outcome in results.
    Ends when the queue is empty. The queue is never refilled.
    """
    logger.debug(f"Task begin")

    while True:
        try:
            instance = jobs.get_nowait()
        except asyncio.QueueEmpty:
            break

        try:
            outcome = await probe_instance(session, header_gen, instance, settings)
        except Exception as errex:
            logger.exception(f"pb_error 6: worker error {instance.address}")
            outcome = Outcome.failure(
                instance, ScraperError(instance.address, "pb_error 6", repr(errex))
            )

        results.put_nowait(outcome)
        jobs.task_done()

    logger.debug(f"Task complete")


async def close_results(workers, results):
    """
    Put the end marker in results once every worker has finished
    """
    try:
        await asyncio.gather(*workers)
    finally:
        results.put_nowait(None)


class Aggregator:
    """
    Sort outcomes into the report buckets and the error map.
    This is the only place the report and the error map are modified.
    """

    def __init__(self, total, settings, progress_bar=None):
        self.total = total
        self.settings = settings
        self.progress_bar = progress_bar
        self.count = 0
        self.report = Report()
        self.errors = {}  # address: ScraperError
        self.discarded = []

    def add(self, outcome):
        self.count += 1
        self.update_progress()

        if outcome.failed:
            self.errors[outcome.instance.address] = outcome.error
            return

        if outcome.disposition == pb_constants.DISCARD:
            logger.debug(f"No permanent storage: {outcome.instance.address}")
            self.discarded.append(outcome.instance)
            return

        self.report.bucket(outcome.disposition).append(outcome.instance)

    def update_progress(self):
        if self.progress_bar is not None:
            self.progress_bar.update()

        if self.count % self.settings.progress_every == 0 or self.count == self.total:
            logger.info(f"Progress: {self.count} of {self.total}")

    async def drain(self, results):
        """
        Consume outcomes until the end marker arrives
        """
        while True:
            outcome = await results.get()
            if outcome is None:
                break
            self.add(outcome)


async def verify_instances(session, header_gen, instances, settings, progress_bar=None):
    """
    Probe every instance with a fixed number of worker tasks.
    Return the aggregator holding the report and the error map.
    """
    jobs = asyncio.Queue()
    for instance in instances:
        jobs.put_nowait(instance)
    results = asyncio.Queue()  # Unbounded so workers never wait on the aggregator

    logger.info(f"{settings.concurrency=}")
    workers = [
        asyncio.create_task(
            worker(session, header_gen, jobs, results, settings), name=f"worker-{i}"
        )
        for i in range(settings.concurrency)
    ]
    closer = asyncio.create_task(close_results(workers, results))

    aggregator = Aggregator(len(instances), settings, progress_bar)
    await aggregator.drain(results)
    await closer

    return aggregator


def write_report(report, path):
    """
    Save the report buckets as indented json. Errors are left to the caller
    """
    with open(path, "w", encoding="utf8") as out_file:
        json.dump(report.to_dict(), out_file, indent=2, allow_nan=False)
        out_file.write("\n")
    logger.info(f"Report written: {path}")


def read_report(path):
    with open(path, "r", encoding="utf8") as in_file:
        return Report.from_dict(json.load(in_file))


def write_errorlog(errors, path):
    """
    Save the error map for pb_err_parse.
    address: [error code, error desc]
    """
    errorlog = {address: [errex.err_code, errex.err_desc] for address, errex in errors.items()}
    try:
        with open(path, "w", encoding="utf8") as out_file:
            json.dump(errorlog, out_file, indent=2)
        logger.info(f"errorlog written: {path}")
    except OSError:
        logger.exception(f"cant write errorlog: {path}")


def create_progress_bar(total):
    manager = enlighten.get_manager()
    return manager.counter(total=total, desc="Verified", unit="instances", leave=False)


def display_stats(start_time, total, aggregator, settings):
    """
    Stop the timer and display stats
    """
    duration = datetime.now() - start_time
    seconds = max(duration.total_seconds(), 0.001)
    report = aggregator.report
    logger.info(f"\n\nInstances checked = {total}")
    logger.info(f"Duration = {round(seconds, 1)} seconds")
    logger.info(f"Instances/sec/task = {str((total / seconds) / settings.concurrency)[:4]}")
    logger.info(
        f"reliable: {len(report.reliable)} | low_uptime: {len(report.low_uptime)} | "
        f"unreliable: {len(report.unreliable)} | discarded: {len(aggregator.discarded)} | "
        f"failed: {len(aggregator.errors)}"
    )

    if aggregator.errors:
        logger.warning(f"Failed requests: {len(aggregator.errors)}")
        for address, errex in aggregator.errors.items():
            logger.warning(f"{errex.err_code} [{address}]: {errex.err_desc}")


async def main(settings, header_gen):
    """
    Get the candidates from the directory and verify them
    """
    async with create_session(settings) as session:
        instances = await fetch_directory(
            session, header_gen, pb_constants.DIRECTORY_URL, settings
        )

        progress_bar = create_progress_bar(len(instances))
        aggregator = await verify_instances(
            session, header_gen, instances, settings, progress_bar
        )
        progress_bar.close()

    return instances, aggregator


class ContextFilter(logging.Filter):
    """
    Append the asyncio task name, if available, to the log
    """

    def filter(self, record):
        try:
            task = asyncio.current_task()
        except RuntimeError:
            task = None
        record.task_id = f"- {task.get_name()}" if task else ""
        return True


logger = logging.getLogger()


def config_logger(log_path=pb_constants.LOG_PATH):
    """
    DEBUG to log_path with task names, INFO to the console
    """
    logger.setLevel(logging.DEBUG)

    file_handler = logging.FileHandler(log_path, mode="a")
    file_handler.setLevel(logging.DEBUG)
    file_format = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s %(task_id)s", datefmt="%H:%M:%S"
    )
    file_handler.setFormatter(file_format)
    file_handler.addFilter(ContextFilter())

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_format = logging.Formatter("%(levelname)s - %(message)s")
    console_handler.setFormatter(console_format)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)


def run():
    """
    Process entry. Return the exit status
    """
    config_logger()
    start_time = datetime.now()
    settings = Settings()

    try:
        header_gen = HeaderGenerator()
    except Exception as errex:
        logger.critical(f"Header generator init failed: {errex!r}")
        return 1

    try:
        instances, aggregator = asyncio.run(main(settings, header_gen))
    except ScraperError as errex:
        logger.critical(f"Directory unavailable: {errex}")
        return 1

    logger.info(f"  Verification complete  ".center(70, "="))
    display_stats(start_time, len(instances), aggregator, settings)
    write_errorlog(aggregator.errors, pb_constants.ERROR_PATH)

    try:
        write_report(aggregator.report, pb_constants.OUTPUT_PATH)
    except (OSError, ValueError) as errex:
        logger.critical(f"Cant write report: {errex}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(run())
