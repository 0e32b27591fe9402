"""
Scrape CUBRID server statistics (SHOW STATDUMP).
"""
from cubrid_exporter.collector.sample import NAMESPACE, MetricDesc, build_fq_name
from cubrid_exporter.collector.scraper import Scraper, parse_float, query_rows

STATDUMP = "statdump"

STATDUMP_QUERY = "SHOW STATDUMP {database}"

STATDUMP_INFO = MetricDesc(
    build_fq_name(NAMESPACE, "statdump", "info"),
    "Information about CUBRID Statdump",
    ["key"],
)


class StatdumpScraper(Scraper):
    """Key/value statistics; non-numeric values are skipped."""

    name = STATDUMP
    help = "Collect server statistics from SHOW STATDUMP"
    version = 10.2

    def __init__(self, database: str = "demodb"):
        self.database = database

    def scrape(self, ctx, connection, sink):
        query = STATDUMP_QUERY.format(database=self.database)
        for key, raw in query_rows(ctx, connection, query, columns=2):
            value = parse_float(raw, str(key))
            if value is not None:
                sink.emit(STATDUMP_INFO.gauge(value, key))
