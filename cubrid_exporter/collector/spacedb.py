"""
Scrape CUBRID volume space usage (SHOW SPACEDB).
"""
from cubrid_exporter.collector.sample import NAMESPACE, MetricDesc, build_fq_name
from cubrid_exporter.collector.scraper import (
    Scraper,
    parse_float,
    query_rows,
    used_percentage,
)

SPACEDB = "spacedb"

SPACEDB_QUERY = "SHOW SPACEDB {database}"

SPACEDB_COLUMNS = ("vol_no", "type", "purpose", "count", "used_pages", "free_pages")

# Same key as earlier releases of the exporter.
USED_PERCENTAGE_KEY = "usedPercentage"

VOLUME_INFO = MetricDesc(
    build_fq_name(NAMESPACE, "spacedb", "info"),
    "Information about CUBRID SpaceDB",
    ["vol_no", "key"],
)


class SpaceDBScraper(Scraper):
    """
    Per-volume page counts plus the derived ``usedPercentage``.

    ``used_pages`` and ``free_pages`` feed the ratio, so a bad value there
    fails the scrape; the other columns are best-effort.
    """

    name = SPACEDB
    help = "Collect volume space usage from SHOW SPACEDB"
    version = 10.2

    def __init__(self, database: str = "demodb"):
        self.database = database

    def scrape(self, ctx, connection, sink):
        query = SPACEDB_QUERY.format(database=self.database)
        rows = query_rows(ctx, connection, query, columns=len(SPACEDB_COLUMNS))
        for vol_no, vol_type, purpose, count, used_pages, free_pages in rows:
            vol_no = str(vol_no)

            for key, raw in (("type", vol_type), ("purpose", purpose), ("count", count)):
                value = parse_float(raw, key)
                if value is not None:
                    sink.emit(VOLUME_INFO.gauge(value, vol_no, key))

            used = parse_float(used_pages, "used_pages", required=True)
            free = parse_float(free_pages, "free_pages", required=True)
            sink.emit(VOLUME_INFO.gauge(used, vol_no, "used_pages"))
            sink.emit(VOLUME_INFO.gauge(free, vol_no, "free_pages"))
            sink.emit(VOLUME_INFO.gauge(used_percentage(used, free), vol_no, USED_PERCENTAGE_KEY))
