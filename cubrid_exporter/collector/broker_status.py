"""
Scrape CUBRID broker status (SHOW BROKERS).
"""
from cubrid_exporter.collector.sample import NAMESPACE, MetricDesc, build_fq_name
from cubrid_exporter.collector.scraper import Scraper, parse_float, query_rows

BROKER_STATUS = "broker_status"

BROKER_STATUS_QUERY = "SHOW BROKERS"

# Column order of SHOW BROKERS; everything after broker_name is numeric.
BROKER_COLUMNS = (
    "broker_name",
    "num_as",
    "pid",
    "port",
    "qsize",
    "num_select",
    "num_insert",
    "num_update",
    "num_delete",
    "num_trans",
    "num_query",
    "num_conns",
    "num_long_query",
    "num_error_query",
    "num_uniq_error",
)

BROKER_INFO = MetricDesc(
    build_fq_name(NAMESPACE, "broker_status", "info"),
    "Information about CUBRID Broker Status",
    ["broker_name", "key"],
)


class BrokerStatusScraper(Scraper):
    """One gauge per broker and column. Unparseable columns are skipped."""

    name = BROKER_STATUS
    help = "Collect broker status from SHOW BROKERS"
    version = 10.2

    def scrape(self, ctx, connection, sink):
        rows = query_rows(ctx, connection, BROKER_STATUS_QUERY, columns=len(BROKER_COLUMNS))
        for row in rows:
            broker_name = str(row[0])
            for key, raw in zip(BROKER_COLUMNS[1:], row[1:]):
                value = parse_float(raw, key)
                if value is None:
                    continue
                sink.emit(BROKER_INFO.gauge(value, broker_name, key))
