# exam_practice/core/dummy_data.py
from typing import Any, Dict, List

from .models import Question

# Seed question bank used when no question database is available
DUMMY_QUESTIONS: List[Dict[str, Any]] = [
    # ==================== Databricks Lakehouse Platform ====================
    {
        "id": "q_dlp_001",
        "topic": "Databricks Lakehouse Platform",
        "subtopic": "Architecture Overview",
        "difficulty": "easy",
        "question_text": "Which file format stores the data files of a Delta Lake table?",
        "options": ["Parquet", "JSON", "Avro", "ORC"],
        "correct_answer": 0,
        "explanation": "Delta Lake writes table data as Parquet files and tracks changes to them in a JSON transaction log.",
        "documentation_links": ["https://docs.databricks.com/delta/index.html"],
        "tags": ["delta-lake", "parquet", "architecture"]
    },
    {
        "id": "q_dlp_002",
        "topic": "Databricks Lakehouse Platform",
        "subtopic": "Compute Resources",
        "difficulty": "medium",
        "question_text": "Which compute type suits interactive notebook exploration shared by several users?",
        "options": ["Job cluster", "All-purpose cluster", "Instance pool", "Serverless job"],
        "correct_answer": 1,
        "explanation": "All-purpose clusters stay up until terminated and are meant for interactive, collaborative work in notebooks.",
        "documentation_links": ["https://docs.databricks.com/clusters/index.html"],
        "tags": ["clusters", "compute"]
    },
    {
        "id": "q_dlp_003",
        "topic": "Databricks Lakehouse Platform",
        "subtopic": "Delta Lake Features",
        "difficulty": "hard",
        "question_text": "What does the _delta_log directory of a Delta table contain?",
        "options": [
            "Backup copies of the data files",
            "Cached query plans",
            "Ordered commit files describing every table transaction",
            "Cluster event logs"
        ],
        "correct_answer": 2,
        "explanation": "Each commit to a Delta table is recorded as a JSON file in _delta_log, which enables ACID guarantees and time travel.",
        "documentation_links": ["https://docs.databricks.com/delta/delta-intro.html"],
        "tags": ["delta-lake", "transaction-log"]
    },
    {
        "id": "q_dlp_004",
        "topic": "Databricks Lakehouse Platform",
        "subtopic": "Workspace Management",
        "difficulty": "easy",
        "question_text": "What is the main purpose of Databricks Repos (Git folders)?",
        "options": [
            "Storing table data",
            "Managing cluster policies",
            "Granting workspace permissions",
            "Version control of notebooks and code through Git"
        ],
        "correct_answer": 3,
        "explanation": "Repos integrate a workspace folder with a Git provider so notebooks and files can be versioned, branched and reviewed.",
        "documentation_links": ["https://docs.databricks.com/repos/index.html"],
        "tags": ["repos", "git"]
    },
    # ==================== ELT with Spark SQL and Python ====================
    {
        "id": "q_elt_001",
        "topic": "ELT with Spark SQL and Python",
        "subtopic": "Spark SQL Basics",
        "difficulty": "easy",
        "question_text": "Which statement creates a table from the result of a query in Spark SQL?",
        "options": ["CREATE TABLE ... AS SELECT", "INSERT OVERWRITE DIRECTORY", "CREATE VIEW ... USING", "COPY TABLE ... FROM"],
        "correct_answer": 0,
        "explanation": "CTAS (CREATE TABLE AS SELECT) creates a table and populates it with the rows returned by the query.",
        "documentation_links": ["https://docs.databricks.com/sql/language-manual/sql-ref-syntax-ddl-create-table-using.html"],
        "tags": ["sql", "ctas"]
    },
    {
        "id": "q_elt_002",
        "topic": "ELT with Spark SQL and Python",
        "subtopic": "DataFrame Operations",
        "difficulty": "medium",
        "question_text": "Which PySpark call removes duplicate rows based on a subset of columns?",
        "options": ["df.distinct(\"id\")", "df.dropDuplicates([\"id\"])", "df.unique(\"id\")", "df.filter(\"id\").drop()"],
        "correct_answer": 1,
        "explanation": "dropDuplicates accepts a list of columns and keeps one row per distinct combination of those columns.",
        "code_example": "deduped = df.dropDuplicates([\"id\"])",
        "documentation_links": ["https://spark.apache.org/docs/latest/api/python/reference/pyspark.sql/api/pyspark.sql.DataFrame.dropDuplicates.html"],
        "tags": ["pyspark", "dataframe"]
    },
    {
        "id": "q_elt_003",
        "topic": "ELT with Spark SQL and Python",
        "subtopic": "Higher-order Functions",
        "difficulty": "hard",
        "question_text": "Which Spark SQL function applies a lambda to each element of an array column?",
        "options": ["explode", "collect_list", "transform", "array_contains"],
        "correct_answer": 2,
        "explanation": "transform(array, x -> expr) returns a new array with the lambda applied to every element, without exploding rows.",
        "code_example": "SELECT transform(prices, p -> p * 1.1) AS adjusted FROM orders",
        "documentation_links": ["https://docs.databricks.com/optimizations/higher-order-lambda-functions.html"],
        "tags": ["sql", "arrays", "higher-order-functions"]
    },
    {
        "id": "q_elt_004",
        "topic": "ELT with Spark SQL and Python",
        "subtopic": "Views",
        "difficulty": "medium",
        "question_text": "Which kind of view is only visible inside the Spark session that created it?",
        "options": ["Stored view", "Global temporary view", "Materialized view", "Temporary view"],
        "correct_answer": 3,
        "explanation": "Temporary views are scoped to the current SparkSession; global temporary views are shared through the global_temp schema.",
        "documentation_links": ["https://docs.databricks.com/sql/language-manual/sql-ref-syntax-ddl-create-view.html"],
        "tags": ["sql", "views"]
    },
    # ==================== Incremental Data Processing ====================
    {
        "id": "q_idp_001",
        "topic": "Incremental Data Processing",
        "subtopic": "Auto Loader",
        "difficulty": "easy",
        "question_text": "Which source format string enables Auto Loader in a streaming read?",
        "options": ["cloudFiles", "autoLoader", "delta", "fileStream"],
        "correct_answer": 0,
        "explanation": "Auto Loader is used through spark.readStream.format(\"cloudFiles\") and incrementally discovers new files.",
        "code_example": "spark.readStream.format(\"cloudFiles\").option(\"cloudFiles.format\", \"json\").load(path)",
        "documentation_links": ["https://docs.databricks.com/ingestion/auto-loader/index.html"],
        "tags": ["auto-loader", "streaming"]
    },
    {
        "id": "q_idp_002",
        "topic": "Incremental Data Processing",
        "subtopic": "Merge Operations",
        "difficulty": "medium",
        "question_text": "Which statement performs an upsert of change records into a Delta table?",
        "options": ["INSERT OVERWRITE", "MERGE INTO", "UPDATE ... FROM", "REPLACE TABLE"],
        "correct_answer": 1,
        "explanation": "MERGE INTO matches source rows to target rows and updates, inserts or deletes them in one atomic operation.",
        "documentation_links": ["https://docs.databricks.com/delta/merge.html"],
        "tags": ["merge", "upsert", "cdc"]
    },
    {
        "id": "q_idp_003",
        "topic": "Incremental Data Processing",
        "subtopic": "Structured Streaming",
        "difficulty": "hard",
        "question_text": "What lets a Structured Streaming query resume exactly where it stopped after a restart?",
        "options": ["Table statistics", "Cluster tags", "The checkpoint location", "The Spark UI event log"],
        "correct_answer": 2,
        "explanation": "The checkpoint location stores offsets and state so a restarted query continues from the last committed batch.",
        "documentation_links": ["https://docs.databricks.com/structured-streaming/query-recovery.html"],
        "tags": ["streaming", "checkpoint"]
    },
    {
        "id": "q_idp_004",
        "topic": "Incremental Data Processing",
        "subtopic": "Triggers",
        "difficulty": "medium",
        "question_text": "Which trigger processes all available data in batches and then stops the stream?",
        "options": ["processingTime='10 seconds'", "continuous='1 second'", "once=False", "availableNow=True"],
        "correct_answer": 3,
        "explanation": "trigger(availableNow=True) consumes everything available at start, possibly across several batches, then terminates.",
        "documentation_links": ["https://docs.databricks.com/structured-streaming/triggers.html"],
        "tags": ["streaming", "triggers"]
    },
    # ==================== Production Pipelines ====================
    {
        "id": "q_pp_001",
        "topic": "Production Pipelines",
        "subtopic": "Delta Live Tables",
        "difficulty": "easy",
        "question_text": "How are data quality rules declared on a Delta Live Tables dataset?",
        "options": ["With expectations", "With cluster policies", "With widgets", "With table ACLs"],
        "correct_answer": 0,
        "explanation": "Expectations such as CONSTRAINT ... EXPECT define quality checks and the action taken on violating records.",
        "documentation_links": ["https://docs.databricks.com/delta-live-tables/expectations.html"],
        "tags": ["dlt", "data-quality"]
    },
    {
        "id": "q_pp_002",
        "topic": "Production Pipelines",
        "subtopic": "Jobs",
        "difficulty": "medium",
        "question_text": "How do you make one task in a Databricks job run only after another task succeeds?",
        "options": ["Put both in one notebook", "Declare a task dependency", "Use the same cluster", "Schedule them a minute apart"],
        "correct_answer": 1,
        "explanation": "Jobs model tasks as a DAG; a task with depends_on runs only when its upstream tasks finish successfully.",
        "documentation_links": ["https://docs.databricks.com/workflows/jobs/create-run-jobs.html"],
        "tags": ["jobs", "orchestration"]
    },
    {
        "id": "q_pp_003",
        "topic": "Production Pipelines",
        "subtopic": "Delta Live Tables",
        "difficulty": "hard",
        "question_text": "Which expectation action drops violating records but keeps the pipeline running?",
        "options": ["ON VIOLATION FAIL UPDATE", "No action clause", "ON VIOLATION DROP ROW", "ON VIOLATION QUARANTINE"],
        "correct_answer": 2,
        "explanation": "ON VIOLATION DROP ROW discards invalid records and logs the metric; FAIL UPDATE stops the update instead.",
        "documentation_links": ["https://docs.databricks.com/delta-live-tables/expectations.html"],
        "tags": ["dlt", "expectations"]
    },
    {
        "id": "q_pp_004",
        "topic": "Production Pipelines",
        "subtopic": "Monitoring",
        "difficulty": "medium",
        "question_text": "Where can you receive a notification when a scheduled job run fails?",
        "options": ["In the cluster init script", "In the notebook widget", "In the table properties", "In the job's email or webhook notifications"],
        "correct_answer": 3,
        "explanation": "Job settings accept email and system destination notifications for start, success and failure events.",
        "documentation_links": ["https://docs.databricks.com/workflows/jobs/job-notifications.html"],
        "tags": ["jobs", "alerts"]
    },
    # ==================== Data Governance ====================
    {
        "id": "q_dg_001",
        "topic": "Data Governance",
        "subtopic": "Unity Catalog",
        "difficulty": "easy",
        "question_text": "What is the three-level namespace used to address a Unity Catalog table?",
        "options": ["catalog.schema.table", "workspace.database.table", "metastore.table.column", "schema.catalog.table"],
        "correct_answer": 0,
        "explanation": "Unity Catalog objects are referenced as catalog.schema.table beneath a metastore.",
        "documentation_links": ["https://docs.databricks.com/data-governance/unity-catalog/index.html"],
        "tags": ["unity-catalog", "namespace"]
    },
    {
        "id": "q_dg_002",
        "topic": "Data Governance",
        "subtopic": "Privileges",
        "difficulty": "medium",
        "question_text": "Which statement lets a group read a specific table?",
        "options": ["ALLOW READ ON TABLE t TO g", "GRANT SELECT ON TABLE t TO g", "SET OWNER OF t TO g", "ALTER TABLE t ADD READER g"],
        "correct_answer": 1,
        "explanation": "GRANT SELECT gives read access; the group also needs USE CATALOG and USE SCHEMA on the parents.",
        "documentation_links": ["https://docs.databricks.com/data-governance/unity-catalog/manage-privileges/index.html"],
        "tags": ["privileges", "security"]
    },
    {
        "id": "q_dg_003",
        "topic": "Data Governance",
        "subtopic": "Lineage",
        "difficulty": "hard",
        "question_text": "Which Unity Catalog feature shows which upstream tables feed a downstream table?",
        "options": ["Audit logs", "Table ACLs", "Data lineage", "Cluster policies"],
        "correct_answer": 2,
        "explanation": "Unity Catalog captures runtime lineage at table and column level across queries, notebooks and jobs.",
        "documentation_links": ["https://docs.databricks.com/data-governance/unity-catalog/data-lineage.html"],
        "tags": ["lineage", "unity-catalog"]
    },
    {
        "id": "q_dg_004",
        "topic": "Data Governance",
        "subtopic": "Ownership",
        "difficulty": "medium",
        "question_text": "Who can grant privileges on a table by default in Unity Catalog?",
        "options": ["Any workspace user", "Only the cluster creator", "Any user with SELECT", "The table owner or a metastore admin"],
        "correct_answer": 3,
        "explanation": "Object owners and metastore admins manage privileges; ownership can be transferred to a group.",
        "documentation_links": ["https://docs.databricks.com/data-governance/unity-catalog/manage-privileges/ownership.html"],
        "tags": ["ownership", "privileges"]
    },
]

def build_question_bank() -> List[Question]:
    """Materialise the seed questions as Question objects"""
    return [Question.from_dict(data) for data in DUMMY_QUESTIONS]
