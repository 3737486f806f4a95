import os
import time
import json
from typing import List, Dict, Any, Optional, Callable
import pandas as pd
import requests
import logging

from .config import ExportConfig
from .models import (
    CSV_COLUMNS,
    PageFailure,
    PagedResult,
    Team,
    TeamMemberships,
    UserInfo,
    UserRecord,
    extract_role_names,
    get_membership_user_id,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Set debug level for troubleshooting
# Uncomment the line below to see debug messages
# logger.setLevel(logging.DEBUG)

PAGE_SIZE = 100
DEFAULT_OUTPUT_FILES = {
    'csv': 'contentful_users.csv',
    'excel': 'contentful_users.xlsx',
    'json': 'contentful_users.json',
}

ProgressCallback = Callable[[float, int, str], None]


def _parse_total(value: Any) -> int:
    """Server-reported item count; numeric strings are accepted, anything else counts as 0"""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def merge_memberships(user_map: Dict[str, UserRecord], result: PagedResult, field: str) -> None:
    """Union role names from one membership collection into the user map.

    ``field`` is either ``'org_roles'`` or ``'space_roles'``.
    """
    for membership in result.items:
        user_id = get_membership_user_id(membership)
        if not user_id:
            continue

        record = user_map.get(user_id)
        if record is None:
            record = user_map[user_id] = UserRecord(user_id=user_id)
        record.fill_identity(result.users.get(user_id))

        role_names = extract_role_names(membership)
        if field == 'org_roles':
            record.add_org_roles(role_names)
        else:
            record.add_space_roles(role_names)


def merge_team_memberships(user_map: Dict[str, UserRecord], team_memberships: TeamMemberships) -> None:
    for user_id, team_names in team_memberships.user_teams.items():
        record = user_map.get(user_id)
        if record is None:
            record = user_map[user_id] = UserRecord(user_id=user_id)
        record.fill_identity(team_memberships.users.get(user_id))
        record.add_teams(team_names)


def build_user_records(org_result: PagedResult, space_result: PagedResult,
                       team_memberships: TeamMemberships) -> List[UserRecord]:
    """Merge org, space and team collections, in that order, into unified records"""
    user_map: Dict[str, UserRecord] = {}
    merge_memberships(user_map, org_result, 'org_roles')
    merge_memberships(user_map, space_result, 'space_roles')
    merge_team_memberships(user_map, team_memberships)
    return list(user_map.values())


class ContentfulExporter:
    def __init__(self, config: ExportConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or self._get_session()
        self.failures: List[PageFailure] = []
        self.stats: Dict[str, int] = {}

    def _get_session(self) -> requests.Session:
        """Initialize an HTTP session authorized for the Management API"""
        session = requests.Session()
        session.headers.update({
            'Authorization': f'Bearer {self.config.api_token}',
        })
        return session

    def fetch_paged_data_with_includes(self, url: str, include: str = '') -> PagedResult:
        """
        Fetch every page of a collection endpoint

        Args:
            url: Collection endpoint
            include: Comma-separated relations to expand, e.g. "sys.user"

        Returns:
            PagedResult with items in server order, the includes.User side-table
            and the failure that stopped pagination early, if any
        """
        result = PagedResult()
        skip = 0

        while True:
            params: Dict[str, Any] = {'limit': PAGE_SIZE, 'skip': skip}
            if include:
                params['include'] = include

            try:
                resp = self.session.get(url, params=params, timeout=self.config.timeout)
                resp.raise_for_status()
                data = resp.json()
            except requests.RequestException as e:
                logger.warning(f"Error fetching data from {url} (skip={skip}): {e}")
                result.failures.append(PageFailure(url=url, skip=skip, error=str(e)))
                break

            if not isinstance(data, dict):
                data = {}
            items = data.get('items') or []
            total = _parse_total(data.get('total'))
            result.items.extend(items)

            includes = data.get('includes') or {}
            for user in includes.get('User') or []:
                info = UserInfo.from_include(user)
                if info:
                    result.users[info.user_id] = info

            logger.debug(f"Fetched {len(items)} items from {url} (skip={skip}, total={total})")

            skip += PAGE_SIZE
            if skip >= total:
                break

        self.failures.extend(result.failures)
        return result

    def fetch_organization_memberships(self) -> PagedResult:
        url = f"{self.config.organization_url}/organization_memberships"
        return self.fetch_paged_data_with_includes(url, 'sys.user')

    def fetch_space_memberships(self) -> PagedResult:
        url = f"{self.config.organization_url}/space_memberships"
        return self.fetch_paged_data_with_includes(url, 'sys.user')

    def fetch_teams(self) -> List[Team]:
        result = self.fetch_paged_data_with_includes(f"{self.config.organization_url}/teams")
        teams = []
        for item in result.items:
            team = Team.from_item(item)
            if team is None:
                logger.debug("Skipping team without an id")
                continue
            teams.append(team)
        return teams

    def fetch_team_memberships(self, progress_callback: Optional[Callable[[int, int, str], None]] = None) -> TeamMemberships:
        """Map each user to the names of the teams they belong to, one team at a time"""
        team_memberships = TeamMemberships()
        failures_before = len(self.failures)
        team_memberships.teams = self.fetch_teams()

        for i, team in enumerate(team_memberships.teams):
            if progress_callback:
                progress_callback(i, len(team_memberships.teams), team.name)

            url = f"{self.config.organization_url}/teams/{team.team_id}/team_memberships"
            result = self.fetch_paged_data_with_includes(url, 'sys.user,sys.organizationMembership')
            team_memberships.users.update(result.users)

            for membership in result.items:
                user_id = get_membership_user_id(membership)
                if not user_id:
                    continue
                team_memberships.user_teams.setdefault(user_id, []).append(team.name)

        team_memberships.failures = self.failures[failures_before:]
        return team_memberships

    def collect_user_records(self, progress_callback: Optional[ProgressCallback] = None) -> List[UserRecord]:
        """Run the three collection passes and merge them into unified records"""
        def report(step: float, description: str):
            if progress_callback:
                progress_callback(step, 3, description)

        report(0, "Fetching organization memberships...")
        logger.info("Fetching organization memberships...")
        org_result = self.fetch_organization_memberships()
        logger.info(f"Fetched {len(org_result.items)} organization memberships.")

        report(1, "Fetching space memberships...")
        logger.info("Fetching space memberships...")
        space_result = self.fetch_space_memberships()
        logger.info(f"Fetched {len(space_result.items)} space memberships.")

        report(2, "Fetching team memberships...")
        logger.info("Fetching team memberships...")

        def team_progress(current: int, total: int, team_name: str):
            report(2 + current / total, f"Fetching team {team_name}")

        team_memberships = self.fetch_team_memberships(team_progress)
        logger.info(f"Fetched team memberships for {len(team_memberships.user_teams)} users "
                    f"across {len(team_memberships.teams)} teams.")

        records = build_user_records(org_result, space_result, team_memberships)
        report(3, "Merging user records...")

        self.stats = {
            'organization_memberships': len(org_result.items),
            'space_memberships': len(space_result.items),
            'teams': len(team_memberships.teams),
            'users': len(records),
            'page_failures': len(self.failures),
        }
        if self.failures:
            logger.warning(f"{len(self.failures)} page request(s) failed; the export is partial")
        return records

    @staticmethod
    def records_to_dataframe(records: List[UserRecord]) -> pd.DataFrame:
        return pd.DataFrame([record.to_row() for record in records], columns=CSV_COLUMNS)

    def export_to_csv(self, output_filename: str = None, progress_callback: Optional[ProgressCallback] = None) -> str:
        """Export all users with their org roles, space roles and teams to CSV"""
        if not output_filename:
            output_filename = DEFAULT_OUTPUT_FILES['csv']

        logger.info("Starting export process...")
        start_time = time.time()

        records = self.collect_user_records(progress_callback)

        logger.info("Generating CSV file...")
        df = self.records_to_dataframe(records)
        df.to_csv(output_filename, index=False, encoding='utf-8')

        self._log_completion(output_filename, start_time, records)
        return output_filename

    def export_to_excel(self, output_filename: str = None, progress_callback: Optional[ProgressCallback] = None) -> str:
        """Export the same table to a single-sheet Excel workbook"""
        if not output_filename:
            output_filename = DEFAULT_OUTPUT_FILES['excel']

        logger.info("Starting Excel export process...")
        start_time = time.time()

        records = self.collect_user_records(progress_callback)
        df = self.records_to_dataframe(records)

        with pd.ExcelWriter(output_filename, engine='openpyxl') as writer:
            df.to_excel(writer, sheet_name='Users', index=False)

            worksheet = writer.sheets['Users']

            # Auto-adjust column widths
            for column in worksheet.columns:
                column_letter = column[0].column_letter
                max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
                worksheet.column_dimensions[column_letter].width = min(max_length + 2, 50)

        self._log_completion(output_filename, start_time, records)
        return output_filename

    def export_to_json(self, output_filename: str = None, progress_callback: Optional[ProgressCallback] = None) -> str:
        """Export the same rows as a JSON array"""
        if not output_filename:
            output_filename = DEFAULT_OUTPUT_FILES['json']

        logger.info("Starting JSON export process...")
        start_time = time.time()

        records = self.collect_user_records(progress_callback)

        with open(output_filename, 'w', encoding='utf-8') as f:
            json.dump([record.to_row() for record in records], f, indent=2, ensure_ascii=False)

        self._log_completion(output_filename, start_time, records)
        logger.info(f"File size: {os.path.getsize(output_filename) / 1024:.1f} KB")
        return output_filename

    def export(self, format: str = 'csv', output_filename: str = None,
               progress_callback: Optional[ProgressCallback] = None) -> str:
        exporters = {
            'csv': self.export_to_csv,
            'excel': self.export_to_excel,
            'json': self.export_to_json,
        }
        if format not in exporters:
            raise ValueError(f"Unsupported export format: {format}")
        return exporters[format](output_filename, progress_callback=progress_callback)

    def _log_completion(self, output_filename: str, start_time: float, records: List[UserRecord]):
        total_time = time.time() - start_time
        logger.info(f"Export completed in {total_time:.1f} seconds!")
        logger.info(f"File saved as: {output_filename}")
        logger.info(f"Total users exported: {len(records)}")
