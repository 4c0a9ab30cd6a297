"""Built-in skill categories for remote extraction results.

Used to categorize skills returned by the inference endpoint when no catalog
override applies. Skills matching none of the lists fall into "Other".
"""

OTHER_CATEGORY = "Other"

# Category -> lowercase skill names. Order matters: the first list that
# contains a skill wins.
CATEGORY_KEYWORDS = {
    "Programming Languages": [
        "javascript",
        "python",
        "java",
        "go",
        "golang",
        "rust",
        "c++",
        "c#",
        "php",
        "ruby",
        "swift",
        "kotlin",
        "typescript",
        "scala",
        "r",
        "matlab",
        "perl",
        "haskell",
        "clojure",
        "erlang",
        "elixir",
        "dart",
        "lua",
        "cobol",
        "fortran",
        "sql",
    ],
    "Frameworks": [
        "react",
        "angular",
        "vue",
        "node",
        "node.js",
        "express",
        "django",
        "flask",
        "fastapi",
        "spring",
        "laravel",
        "rails",
        "asp.net",
        "jquery",
        "bootstrap",
        "tailwind",
        "next.js",
        "nuxt.js",
        "svelte",
    ],
    "Databases": [
        "mysql",
        "postgresql",
        "postgres",
        "mongodb",
        "redis",
        "sqlite",
        "oracle",
        "sql server",
        "mariadb",
        "cassandra",
        "elasticsearch",
        "dynamodb",
        "couchdb",
        "neo4j",
        "clickhouse",
        "snowflake",
        "bigquery",
    ],
    "Cloud Platforms": [
        "aws",
        "azure",
        "gcp",
        "google cloud",
        "amazon web services",
        "microsoft azure",
        "digital ocean",
        "heroku",
        "netlify",
        "vercel",
        "cloudflare",
    ],
    "DevOps Tools": [
        "docker",
        "kubernetes",
        "jenkins",
        "gitlab",
        "github",
        "bitbucket",
        "ansible",
        "terraform",
        "vagrant",
        "prometheus",
        "grafana",
        "splunk",
        "datadog",
        "sentry",
        "circleci",
        "github actions",
    ],
    "Operating Systems": [
        "linux",
        "ubuntu",
        "centos",
        "redhat",
        "debian",
        "windows",
        "macos",
        "unix",
        "freebsd",
        "android",
        "ios",
    ],
    "Methodologies": [
        "agile",
        "scrum",
        "kanban",
        "waterfall",
        "devops",
        "ci/cd",
        "tdd",
        "bdd",
        "pair programming",
        "code review",
        "microservices",
        "rest",
        "graphql",
        "mvc",
        "clean architecture",
    ],
}
