

# Desc: Summarize the errorlog written by pb_scraper

# Args: Optional path to an errorlog. Defaults to pb_constants.ERROR_PATH


import json
import logging
import sys

import pb_constants


logger = logging.getLogger(__name__)


def display_err_descriptions():
    logger.info(f"\n")
    for err_code, err_desc in pb_constants.ERROR_CODES.items():
        logger.info(f"{err_code}: {err_desc}")


def get_options(argv):
    logger.info(f"Args: {argv}")
    if not argv:
        logger.info(f"Using default errorlog")
        return pb_constants.ERROR_PATH
    return argv[0]


def read_errorlog(path):
    """
    address: [error code, error desc]
    """
    with open(path, "r", encoding="utf8") as f:
        errorlog = json.load(f)
    logger.info(f"Using: {path}")
    return errorlog


# Keys are the error codes in pb_constants.ERROR_CODES
def init_tally_dict():
    return {err_code: [] for err_code in pb_constants.ERROR_CODES}


def tally_errors(errorlog):
    err_d = init_tally_dict()
    for address, (err_code, err_desc) in errorlog.items():
        if err_code not in err_d:
            logger.warning(f"Unknown error code: {err_code} {address}")
            err_d[err_code] = []
        err_d[err_code].append(address)
    return err_d


def tally_status_codes(errorlog):
    """
    Count each HTTP status among the "HTTP status" errors. Ex: {"404": 3}
    """
    status_d = {}
    for err_code, err_desc in errorlog.values():
        if err_code != "pb_error 2":
            continue
        status = err_desc.split(" ", maxsplit=1)[0]
        status_d[status] = status_d.get(status, 0) + 1
    return status_d


def display_histogram_of_errors(name, err_d):
    logger.info(f"\n\t{name} errors:")
    total = 0
    max_val = max((len(x) for x in err_d.values()), default=0)  # Most frequent error
    for err_code, url_l in err_d.items():
        error_tally = len(url_l)
        total += error_tally
        padded_tally = str(error_tally).ljust(4)
        percent_of_max = int(error_tally * 100 / max_val) if max_val else 0
        bar = "=" * percent_of_max
        logger.info(f"{err_code}:  {padded_tally} {bar}")

    logger.info(f"     total:  {total}")


def display_status_codes(status_d):
    logger.info(f"\n\tHTTP status counts")
    for status, count in sorted(status_d.items()):
        logger.info(f"{status.ljust(5)} {count}")


def main(argv=None):
    path = get_options(sys.argv[1:] if argv is None else argv)
    errorlog = read_errorlog(path)
    display_err_descriptions()

    err_d = tally_errors(errorlog)
    display_histogram_of_errors("All", err_d)
    display_status_codes(tally_status_codes(errorlog))

    return err_d


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    main()
