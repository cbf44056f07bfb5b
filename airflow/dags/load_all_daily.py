from __future__ import annotations

import os
from datetime import datetime, timedelta
from textwrap import dedent

from airflow import DAG
from airflow.providers.docker.operators.docker import DockerOperator
from docker.types import Mount

DEFAULT_ARGS = {
    "owner": "data-platform",
    "depends_on_past": False,
    "email_on_failure": False,
    "email_on_retry": False,
    "retries": 1,
    "retry_delay": timedelta(minutes=10),
}

COMPOSE_PROJECT = os.environ.get("COMPOSE_PROJECT_NAME", "cityatlas")
DOCKER_NETWORK = f"{COMPOSE_PROJECT}_default"
API_IMAGE = os.environ.get("API_IMAGE", "cityatlas-api:latest")
DATA_MOUNT = Mount(target="/app/data", source="cityatlas_data", type="volume")

ENV_KEYS = [
    "OPENAQ_API_KEY",
    "OPENWEATHER_API_KEY",
    "LOAD_CITIES",
    "LOG_LEVEL",
    "CITYATLAS_DB_PATH",
]

ENVIRONMENT = {key: value for key in ENV_KEYS if (value := os.environ.get(key))}

QUALITY_CHECK_SCRIPT = dedent(
    """
from storage.db import connect

conn = connect(read_only=True)
counts = {
    "metrics": conn.execute("SELECT COUNT(*) FROM city_metrics").fetchone()[0],
    "world_bank": conn.execute("SELECT COUNT(*) FROM city_metrics WHERE source='world_bank'").fetchone()[0],
    "features": conn.execute("SELECT COUNT(*) FROM city_features WHERE computation_date = current_date").fetchone()[0],
    "scored": conn.execute(
        "SELECT COUNT(*) FROM city_features WHERE computation_date = current_date AND overall IS NOT NULL"
    ).fetchone()[0],
}
conn.close()

assert counts["metrics"] > 0, "No metrics loaded"
assert counts["world_bank"] >= 1, "Unexpected World Bank row count"
assert counts["features"] >= 1, "No feature sets computed today"
assert counts["scored"] == counts["features"], "Feature sets without an overall score"
print(counts)
    """
).strip()

RECORD_STATUS_SCRIPT = dedent(
    """
from datetime import datetime, timezone
from storage.db import connect

conn = connect()
scored = conn.execute(
    "SELECT COUNT(*) FROM city_features WHERE computation_date = current_date"
).fetchone()[0]
conn.execute(
    "CREATE TABLE IF NOT EXISTS load_status "
    "(status_key TEXT PRIMARY KEY, loaded_at TIMESTAMP, cities_scored INTEGER)"
)
conn.execute(
    "INSERT OR REPLACE INTO load_status VALUES (?, ?, ?)",
    ("load_all_daily", datetime.now(timezone.utc).replace(tzinfo=None), scored),
)
conn.close()
    """
).strip()


def _container_task(task_id: str, command: list[str]) -> DockerOperator:
    return DockerOperator(
        task_id=task_id,
        image=API_IMAGE,
        command=command,
        docker_url="unix://var/run/docker.sock",
        auto_remove=True,
        network_mode=DOCKER_NETWORK,
        environment=ENVIRONMENT,
        mounts=[DATA_MOUNT],
        mount_tmp_dir=False,
        do_xcom_push=False,
    )


with DAG(
    dag_id="load_all_daily",
    description="Run jobs.load_all to refresh city metrics and scores, then record status",
    schedule="0 6 * * *",
    start_date=datetime(2023, 1, 1),
    catchup=False,
    default_args=DEFAULT_ARGS,
    max_active_runs=1,
    tags=["cityatlas", "scores", "etl"],
) as dag:

    load_city_scores = _container_task("load_city_scores", ["python", "-m", "jobs.load_all"])
    data_quality_checks = _container_task("data_quality_checks", ["python", "-c", QUALITY_CHECK_SCRIPT])
    record_status = _container_task("record_last_success", ["python", "-c", RECORD_STATUS_SCRIPT])

    load_city_scores >> data_quality_checks >> record_status
