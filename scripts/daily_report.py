"""Daily Speed Insights report job.

Builds the performance summary for every project with drain data (or for a
single project with --project-id) over the trailing period and logs each
summary as one JSON line.

Designed to run as a daily scheduled job.
Entry point: main() function (configured in pyproject.toml scripts)

Exit codes:
    0: All reports built (projects without data are logged and skipped)
    1: Fatal error (DATABASE_URL unset, database unreachable)
    2: Report generation failed
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from speed_insights.lib.config import get_database_url, load_env_file, resolve_project_id
from speed_insights.lib.database import create_store_engine, get_session_factory, ping
from speed_insights.lib.distributed_tracing import generate_correlation_id
from speed_insights.lib.errors import SpeedInsightsError
from speed_insights.services.aggregation_service import DEFAULT_PERIOD, PERIODS, AggregationService
from speed_insights.services.event_store import EventStore, SqlAlchemyEventStore
from speed_insights.services.reporting import PROJECT_LIST_LIMIT, build_summary

# Configure logging
logging.basicConfig(
  level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description='Log the Speed Insights performance summary per project')
  parser.add_argument('--project-id', help='Report a single project (defaults to every project with data)')
  parser.add_argument(
    '--period',
    default=DEFAULT_PERIOD,
    choices=sorted(PERIODS),
    help='Trailing window to summarize (default: 24h)',
  )
  return parser.parse_args(argv)


def generate_reports(store: EventStore, project_ids: List[str], period: str) -> Dict[str, Optional[dict]]:
  """Build the summary for each project.

  Args:
      store: Event store to aggregate from
      project_ids: Projects to report on
      period: Trailing window ("1h" ... "30d")

  Returns:
      Mapping of project id to its summary, or None when the project has no
      events in the window
  """
  aggregation = AggregationService(store)
  reports = {}

  for project_id in project_ids:
    aggregated = aggregation.get_aggregated_metrics_for_period(project_id, period)
    if aggregated is None:
      logger.info(f'No Speed Insights data for project {project_id} in the last {period}')
      reports[project_id] = None
      continue

    summary = build_summary(aggregated)
    logger.info(
      f'Report for {project_id}: score {summary["summary"]["overallScore"]} '
      f'({summary["summary"]["overallRating"]}), {aggregated.sample_size} samples'
    )
    print(json.dumps({'projectId': project_id, 'period': period, 'report': summary}))
    reports[project_id] = summary

  return reports


def main(argv: Optional[List[str]] = None):
  """Main entry point for the daily report job."""
  load_env_file('.env')
  load_env_file('.env.local')
  args = parse_args(argv)
  run_id = generate_correlation_id()

  logger.info('=' * 80)
  logger.info(f'Starting Speed Insights daily report (period={args.period}, run_id={run_id})')
  logger.info('=' * 80)

  database_url = get_database_url()
  if not database_url:
    logger.error('Fatal error: DATABASE_URL environment variable not set')
    sys.exit(1)

  try:
    engine = create_store_engine(database_url)
  except (ValueError, SQLAlchemyError) as e:
    logger.error(f'Fatal error: invalid DATABASE_URL: {e}')
    sys.exit(1)

  try:
    try:
      ping(engine)
    except SQLAlchemyError as e:
      logger.error(f'Fatal error: cannot connect to event store: {e}')
      sys.exit(1)

    store = SqlAlchemyEventStore(get_session_factory(engine))

    try:
      project_id = resolve_project_id(args.project_id)
      project_ids = [project_id] if project_id else store.list_distinct_project_ids(PROJECT_LIST_LIMIT)

      if not project_ids:
        logger.info('No projects with drain data; nothing to report')
        sys.exit(0)

      reports = generate_reports(store, project_ids, args.period)
    except (SpeedInsightsError, SQLAlchemyError) as e:
      logger.error(f'Daily report failed: {e}', exc_info=True)
      sys.exit(2)

    reported = sum(1 for summary in reports.values() if summary is not None)
    logger.info(f'Daily report completed: {reported} of {len(reports)} project(s) had data')
    sys.exit(0)
  finally:
    engine.dispose()


if __name__ == '__main__':
  main()
