# src/cmsaudit/rules_data.py
"""Built-in plugin definitions.

This module contains the data definitions for all built-in plugins.
Logic lives in rules.py; this file is pure data.

Each plugin is a JSON-compatible dict: detection signals, agents with their
rule tables, .claudeignore patterns, guidance bullets for ``enhance`` and the
names of the skill documents in skills_data.

Patterns run over the whole file text in MULTILINE mode, so ``.`` stays on
one line while ``\\s`` and negated classes may span lines. ``files`` globs are
matched case-insensitively against paths relative to the project root.
"""

from __future__ import annotations

from typing import Any

_CS = ["**/*.cs"]
_VIEWS = ["**/*.cshtml"]
_DOTNET_CODE = ["**/*.cs", "**/*.cshtml"]
_WEB_CONFIG = ["**/web.config", "**/web.*.config"]
_APPSETTINGS = ["**/appsettings.json", "**/appsettings.*.json"]
_JS = ["**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx", "**/*.mjs"]
_JSX = ["**/*.tsx", "**/*.jsx"]
_ENV = ["**/.env", "**/.env.*"]
_TESTS = ["**/*.Tests/**", "**/*Tests.cs", "**/tests/**", "**/__tests__/**", "**/*.test.*", "**/*.spec.*"]

_EMPTY_CATCH = {
    "code": "QUAL-001",
    "title": "Empty catch block",
    "severity": "warning",
    "pattern": r"catch\s*(\([^)]*\))?\s*\{\s*\}",
    "files": _CS,
    "description": "Exceptions are swallowed without logging, hiding publishing and rendering failures.",
    "recommendation": "Log the exception with the platform logger or let it propagate.",
}

_TODO = {
    "code": "QUAL-002",
    "title": "Unresolved TODO/FIXME marker",
    "severity": "info",
    "pattern": r"//\s*(TODO|FIXME|HACK)\b",
    "files": _CS + _JS,
    "exclude_files": ["**/node_modules/**"],
    "description": "Deferred work left in production code.",
    "recommendation": "Track the work in the backlog and remove the marker.",
}

_HTML_RAW = {
    "title": "Unencoded output with Html.Raw",
    "severity": "warning",
    "pattern": r"@Html\.Raw\(",
    "files": _VIEWS,
    "description": "Html.Raw bypasses Razor encoding; editor- or user-supplied values become an XSS vector.",
    "recommendation": "Render fields through the platform field helpers or encode the value.",
}

_GENERIC_IGNORE = [
    ".git/",
    ".vs/",
    ".idea/",
    "bin/",
    "obj/",
    "node_modules/",
    "*.dll",
    "*.pdb",
    "*.log",
    "*.min.js",
    "*.map",
]

# ---------------------------------------------------------------------------
# Sitecore XP (classic MVC on .NET Framework)
# ---------------------------------------------------------------------------

_SITECORE_CLASSIC: dict[str, Any] = {
    "plugin": "sitecore-classic",
    "version": "1.0.0",
    "display_name": "Sitecore XP (Classic)",
    "description": "Static review of Sitecore XP MVC solutions: Helix layering, configuration security, content access and caching.",
    "platform": "Sitecore XP",
    "detection": [
        {
            "label": "Sitecore.Kernel package reference",
            "files": "**/*.csproj",
            "pattern": r"Sitecore\.(Kernel|Mvc)\b",
            "version_pattern": r"Include=\"Sitecore\.Kernel\"\s+Version=\"([^\"]+)\"",
            "weight": 4,
        },
        {
            "label": "Sitecore.Kernel in packages.config",
            "files": "**/packages.config",
            "pattern": r"id=\"Sitecore\.Kernel\"",
            "version_pattern": r"id=\"Sitecore\.Kernel\"\s+version=\"([^\"]+)\"",
            "weight": 4,
        },
        {"label": "App_Config include patches", "files": "**/App_Config/Include/**/*.config", "weight": 2},
        {"label": "<sitecore> configuration section", "files": "**/web.config", "pattern": r"<sitecore\b", "weight": 2},
        {"label": "Sitecore serialization module", "files": "**/*.module.json", "pattern": r"\"items\"\s*:", "weight": 1},
    ],
    "agents": [
        {
            "agent": "architecture",
            "display_name": "Architecture",
            "category": "architecture",
            "description": "Content access patterns and dependency management.",
            "rules": [
                {
                    "code": "ARCH-001",
                    "title": "Hardcoded content tree path",
                    "severity": "warning",
                    "pattern": r"GetItem\(\s*@?\"/sitecore/content",
                    "files": _CS,
                    "description": "Items are fetched by absolute path; moving or renaming content breaks the code.",
                    "recommendation": "Reference items by ID constants or resolve them from the rendering datasource.",
                },
                {
                    "code": "ARCH-002",
                    "title": "Service locator instead of constructor injection",
                    "severity": "warning",
                    "pattern": r"ServiceLocator\.ServiceProvider\.GetService|DependencyResolver\.Current\.GetService",
                    "files": _CS,
                    "description": "Dependencies are pulled from a global container, hiding them from tests and configurators.",
                    "recommendation": "Register services in an IServicesConfigurator and inject them through constructors.",
                },
                {
                    "code": "ARCH-003",
                    "title": "Master database used from delivery code",
                    "severity": "warning",
                    "pattern": r"GetDatabase\(\s*\"master\"\s*\)",
                    "files": _CS,
                    "exclude_files": _TESTS,
                    "description": "Content Delivery servers have no master database; this code only works on CM.",
                    "recommendation": "Use Sitecore.Context.Database or inject the database for the current role.",
                },
            ],
        },
        {
            "agent": "security",
            "display_name": "Security",
            "category": "security",
            "description": "Configuration hardening, credentials and output encoding.",
            "rules": [
                {
                    "code": "SEC-001",
                    "title": "Plaintext password in connection string",
                    "severity": "critical",
                    "pattern": r"password\s*=\s*(?!\$\(|\{|#\{)[^;\"'\s]+",
                    "ignore_case": True,
                    "files": ["**/ConnectionStrings.config", "**/ConnectionStrings.*.config", "**/web.config"],
                    "description": "Database credentials are committed in clear text.",
                    "recommendation": "Inject connection strings at deploy time (environment variables, Key Vault, config transforms).",
                },
                {
                    "code": "SEC-002",
                    "title": "Debug compilation enabled",
                    "severity": "critical",
                    "pattern": r"<compilation[^>]*debug=\"true\"",
                    "ignore_case": True,
                    "files": _WEB_CONFIG,
                    "description": "Debug builds disable batching and leak stack traces.",
                    "recommendation": "Set debug=\"false\" through a release config transform.",
                },
                {
                    "code": "SEC-003",
                    "title": "Custom errors disabled",
                    "severity": "warning",
                    "pattern": r"<customErrors[^>]*mode=\"Off\"",
                    "ignore_case": True,
                    "files": _WEB_CONFIG,
                    "description": "Detailed ASP.NET error pages are shown to visitors.",
                    "recommendation": "Use mode=\"RemoteOnly\" or \"On\" with a friendly error page.",
                },
                {
                    "code": "SEC-004",
                    "title": "SecurityDisabler used in request code",
                    "severity": "warning",
                    "pattern": r"new\s+SecurityDisabler\s*\(",
                    "files": _CS,
                    "description": "Item security is bypassed for the whole using block.",
                    "recommendation": "Prefer UserSwitcher with a least-privilege service account.",
                },
                dict(_HTML_RAW, code="SEC-005"),
            ],
        },
        {
            "agent": "performance",
            "display_name": "Performance",
            "category": "performance",
            "description": "Expensive tree traversal and caching configuration.",
            "rules": [
                {
                    "code": "PERF-001",
                    "title": "Full descendant traversal",
                    "severity": "warning",
                    "pattern": r"\.Axes\.GetDescendants\(\)|\.GetDescendants\(\)",
                    "files": _DOTNET_CODE,
                    "description": "Walks the entire subtree through the data provider on every call.",
                    "recommendation": "Query a Content Search index instead of walking the tree.",
                },
                {
                    "code": "PERF-002",
                    "title": "Sitecore Query with descendant axis",
                    "severity": "warning",
                    "pattern": r"SelectItems\(\s*\"[^\"]*//",
                    "files": _CS,
                    "description": "Descendant-axis Sitecore Query is evaluated item by item.",
                    "recommendation": "Use Content Search (ISearchIndex) for lookups across the tree.",
                },
                {
                    "code": "PERF-003",
                    "title": "HTML cache not enabled for any site",
                    "severity": "info",
                    "mode": "absent",
                    "pattern": r"cacheHtml=\"true\"",
                    "ignore_case": True,
                    "files": ["**/App_Config/**/*.config"],
                    "description": "No site definition turns on rendering output caching.",
                    "recommendation": "Enable cacheHtml on the site and mark renderings Cacheable with VaryBy options.",
                },
            ],
        },
        {
            "agent": "quality",
            "display_name": "Code Quality",
            "category": "quality",
            "description": "Error handling and maintainability.",
            "rules": [
                _EMPTY_CATCH,
                _TODO,
                {
                    "code": "QUAL-003",
                    "title": "Console output instead of Sitecore logging",
                    "severity": "info",
                    "pattern": r"Console\.Write(Line)?\(",
                    "files": _CS,
                    "exclude_files": _TESTS,
                    "description": "Console output never reaches the Sitecore log files.",
                    "recommendation": "Use Sitecore.Diagnostics.Log or an injected ILogger.",
                },
            ],
        },
        {
            "agent": "helix",
            "display_name": "Helix Conventions",
            "category": "platform",
            "description": "Layer dependency rules of the Helix architecture.",
            "rules": [
                {
                    "code": "HELIX-001",
                    "title": "Feature project references another Feature",
                    "severity": "warning",
                    "pattern": r"<ProjectReference\s+Include=\"[^\"]*[\\/]Feature[\\/]",
                    "files": ["**/Feature/**/*.csproj"],
                    "description": "Features must depend only on Foundation modules.",
                    "recommendation": "Move the shared code into a Foundation module.",
                },
                {
                    "code": "HELIX-002",
                    "title": "Foundation project references a Feature or Project",
                    "severity": "critical",
                    "pattern": r"<ProjectReference\s+Include=\"[^\"]*[\\/](Feature|Project)[\\/]",
                    "files": ["**/Foundation/**/*.csproj"],
                    "description": "Dependencies point up the layer stack, creating cycles between layers.",
                    "recommendation": "Invert the dependency with an abstraction in Foundation.",
                },
                {
                    "code": "HELIX-003",
                    "title": "Content path literal in view",
                    "severity": "info",
                    "pattern": r"/sitecore/content/",
                    "ignore_case": True,
                    "files": _VIEWS,
                    "description": "Views depend on a specific content tree location.",
                    "recommendation": "Pass data to the view through the rendering model.",
                },
            ],
        },
    ],
    "ignore_patterns": [
        "App_Data/",
        "temp/",
        "sitecore/shell/",
        "sitecore modules/",
        "sitecore/admin/",
        "*.item",
        "Sitecore.*.xml",
    ],
    "guidance": [
        "Follow Helix layering: Project -> Feature -> Foundation; Features never reference each other.",
        "Patch configuration through App_Config/Include files with role:require, never edit Sitecore's own config files.",
        "Resolve content from rendering datasources or item IDs, not absolute /sitecore/content paths.",
        "Register services through IServicesConfigurator and use constructor injection.",
        "Use Content Search for queries across the tree; avoid GetDescendants and descendant Sitecore Query.",
        "Log through Sitecore.Diagnostics.Log so messages land in the Sitecore log files.",
    ],
    "skills": ["sitecore-classic-rendering", "sitecore-classic-config-patch"],
}

# ---------------------------------------------------------------------------
# Sitecore XM Cloud (JSS / Next.js head)
# ---------------------------------------------------------------------------

_SITECORE_XMCLOUD: dict[str, Any] = {
    "plugin": "sitecore-xmcloud",
    "version": "1.0.0",
    "display_name": "Sitecore XM Cloud",
    "description": "Static review of XM Cloud head applications built with Sitecore JSS / Content SDK and Next.js.",
    "platform": "Sitecore XM Cloud",
    "detection": [
        {
            "label": "Sitecore JSS / Content SDK dependency",
            "files": "**/package.json",
            "pattern": r"\"@sitecore-(jss/sitecore-jss-nextjs|content-sdk/nextjs)\"",
            "version_pattern": r"\"@sitecore-(?:jss/sitecore-jss-nextjs|content-sdk/nextjs)\"\s*:\s*\"[~^]?([\d][^\"]*)\"",
            "weight": 4,
        },
        {"label": "xmcloud.build.json", "files": "**/xmcloud.build.json", "weight": 3},
        {"label": "sitecore.json CLI config", "files": "**/sitecore.json", "weight": 1},
    ],
    "agents": [
        {
            "agent": "architecture",
            "display_name": "Architecture",
            "category": "architecture",
            "description": "Data fetching and content API usage.",
            "rules": [
                {
                    "code": "ARCH-001",
                    "title": "Hardcoded Experience Edge endpoint",
                    "severity": "warning",
                    "pattern": r"https://[\w.-]+/(sitecore/api/graph/edge|api/graphql/v1)",
                    "files": _JS,
                    "exclude_files": ["**/node_modules/**"],
                    "description": "The GraphQL endpoint is baked into the bundle instead of coming from configuration.",
                    "recommendation": "Read the endpoint from the JSS config / environment variables.",
                },
                {
                    "code": "ARCH-002",
                    "title": "Client-side fetch of layout data",
                    "severity": "warning",
                    "pattern": r"useEffect\(.*fetch\(|fetch\(.*/sitecore/api/",
                    "files": _JSX,
                    "description": "Layout or content is fetched in the browser, bypassing SSG and the Edge cache.",
                    "recommendation": "Fetch in getStaticProps / component-level data fetching (getComponentProps).",
                },
            ],
        },
        {
            "agent": "security",
            "display_name": "Security",
            "category": "security",
            "description": "Secrets exposed to the browser and unsafe rendering.",
            "rules": [
                {
                    "code": "SEC-001",
                    "title": "Secret exposed through NEXT_PUBLIC variable",
                    "severity": "critical",
                    "pattern": r"NEXT_PUBLIC_[A-Z0-9_]*(API_KEY|SECRET|TOKEN|CONTEXT_ID)",
                    "files": _JS + _ENV,
                    "exclude_files": ["**/node_modules/**"],
                    "description": "NEXT_PUBLIC_ variables are inlined into the client bundle.",
                    "recommendation": "Keep API keys and Edge context IDs server-side (no NEXT_PUBLIC_ prefix).",
                },
                {
                    "code": "SEC-002",
                    "title": "Hardcoded Sitecore API key",
                    "severity": "critical",
                    "pattern": r"(sc_apikey|apiKey)\s*[:=]\s*['\"]\{?[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-",
                    "ignore_case": True,
                    "files": _JS,
                    "exclude_files": ["**/node_modules/**"],
                    "description": "An API key GUID is committed in source.",
                    "recommendation": "Load the key from SITECORE_API_KEY at build time.",
                },
                {
                    "code": "SEC-003",
                    "title": "dangerouslySetInnerHTML with content",
                    "severity": "warning",
                    "pattern": r"dangerouslySetInnerHTML",
                    "files": _JSX,
                    "description": "Raw HTML injection bypasses React escaping.",
                    "recommendation": "Use the RichText field component, which handles editing and sanitizing.",
                },
            ],
        },
        {
            "agent": "performance",
            "display_name": "Performance",
            "category": "performance",
            "description": "Rendering mode and asset delivery.",
            "rules": [
                {
                    "code": "PERF-001",
                    "title": "getServerSideProps on a content route",
                    "severity": "warning",
                    "pattern": r"export\s+(const|async\s+function|function)\s+getServerSideProps",
                    "files": _JS,
                    "description": "Server-side rendering on every request skips static generation and the CDN cache.",
                    "recommendation": "Prefer getStaticProps with revalidate (ISR) for content pages.",
                },
                {
                    "code": "PERF-002",
                    "title": "Plain <img> instead of NextImage",
                    "severity": "info",
                    "pattern": r"<img\s",
                    "files": _JSX,
                    "description": "Images bypass Next.js optimization and responsive sizing.",
                    "recommendation": "Use the JSS NextImage component for image fields.",
                },
                {
                    "code": "PERF-003",
                    "title": "Incremental static regeneration disabled",
                    "severity": "info",
                    "pattern": r"revalidate\s*:\s*(false|0)\b",
                    "files": _JS,
                    "description": "Pages are never regenerated after publish.",
                    "recommendation": "Set a revalidate interval or use on-demand revalidation webhooks.",
                },
            ],
        },
        {
            "agent": "quality",
            "display_name": "Code Quality",
            "category": "quality",
            "description": "Editing support and type safety.",
            "rules": [
                {
                    "code": "QUAL-001",
                    "title": "Field value rendered directly",
                    "severity": "warning",
                    "pattern": r"\{\s*(props\.)?fields\??\.\w+\??\.value\s*\}",
                    "files": _JSX,
                    "description": "Rendering .value skips the field helpers, so the field is not editable in Pages.",
                    "recommendation": "Render with <Text>, <RichText>, <Image> or <Link> field components.",
                },
                {
                    "code": "QUAL-002",
                    "title": "console.log left in component",
                    "severity": "info",
                    "pattern": r"console\.log\(",
                    "files": _JS,
                    "exclude_files": ["**/node_modules/**", "**/scripts/**"],
                    "description": "Debug output ships to the browser console.",
                    "recommendation": "Remove it or use the debug module from JSS.",
                },
                {
                    "code": "QUAL-003",
                    "title": "Explicit any type",
                    "severity": "info",
                    "pattern": r":\s*any\b",
                    "files": ["**/*.ts", "**/*.tsx"],
                    "exclude_files": ["**/node_modules/**", "**/*.d.ts"],
                    "description": "Field and layout data lose their generated types.",
                    "recommendation": "Type component props with the JSS field types.",
                },
            ],
        },
        {
            "agent": "jss",
            "display_name": "JSS Conventions",
            "category": "platform",
            "description": "Use of deprecated JSS services and workflows.",
            "rules": [
                {
                    "code": "JSS-001",
                    "title": "Layout Service REST endpoint in use",
                    "severity": "warning",
                    "pattern": r"/sitecore/api/layout/render|RestLayoutService",
                    "files": _JS,
                    "exclude_files": ["**/node_modules/**"],
                    "description": "XM Cloud serves layout through Experience Edge GraphQL only.",
                    "recommendation": "Switch to GraphQLLayoutService.",
                },
                {
                    "code": "JSS-002",
                    "title": "Disconnected mode scripts",
                    "severity": "info",
                    "pattern": r"start:disconnected|disconnected-mode",
                    "files": ["**/package.json"],
                    "description": "Disconnected mode is not supported on XM Cloud.",
                    "recommendation": "Develop against a connected local container or XM Cloud environment.",
                },
            ],
        },
    ],
    "ignore_patterns": [
        ".next/",
        "out/",
        ".generated/",
        "src/temp/",
        ".sitecore/",
        "next-env.d.ts",
    ],
    "guidance": [
        "Content is served from Experience Edge; fetch it at build/revalidate time, not in the browser.",
        "Render every Sitecore field with the JSS field components (<Text>, <RichText>, <Image>, <Link>) so it stays editable.",
        "Keep SITECORE_API_KEY and Edge context IDs server-side; never prefix them with NEXT_PUBLIC_.",
        "Prefer getStaticProps with revalidate (ISR) over getServerSideProps.",
        "Register new components through the component builder / component map.",
    ],
    "skills": ["sitecore-xmcloud-component"],
}

# ---------------------------------------------------------------------------
# Umbraco CMS
# ---------------------------------------------------------------------------

_UMBRACO: dict[str, Any] = {
    "plugin": "umbraco",
    "version": "1.0.0",
    "display_name": "Umbraco CMS",
    "description": "Static review of Umbraco CMS solutions on .NET: content access, configuration security and upgrade readiness.",
    "platform": "Umbraco",
    "detection": [
        {
            "label": "Umbraco.Cms package reference",
            "files": "**/*.csproj",
            "pattern": r"Include=\"Umbraco\.Cms",
            "version_pattern": r"Include=\"Umbraco\.Cms(?:\.[A-Za-z.]+)?\"\s+Version=\"([^\"]+)\"",
            "weight": 4,
        },
        {"label": "Umbraco section in appsettings", "files": "**/appsettings.json", "pattern": r"\"Umbraco\"\s*:", "weight": 2},
        {"label": "UmbracoViewPage views", "files": "**/*.cshtml", "pattern": r"UmbracoViewPage", "weight": 2},
        {"label": "App_Plugins package manifests", "files": "**/App_Plugins/**/*.json", "weight": 1},
    ],
    "agents": [
        {
            "agent": "architecture",
            "display_name": "Architecture",
            "category": "architecture",
            "description": "Content access and service usage.",
            "rules": [
                {
                    "code": "ARCH-001",
                    "title": "Content fetched by hardcoded node ID",
                    "severity": "warning",
                    "pattern": r"(\.Content|GetById)\(\s*\d+\s*\)",
                    "files": _DOTNET_CODE,
                    "description": "Integer IDs differ between environments.",
                    "recommendation": "Use GUID keys, content pickers or configured settings nodes.",
                },
                {
                    "code": "ARCH-002",
                    "title": "Management service used in a view",
                    "severity": "warning",
                    "pattern": r"@inject\s+I(Content|Media)Service\b|Services\.ContentService",
                    "files": _VIEWS,
                    "description": "IContentService hits the database; views should read the published cache.",
                    "recommendation": "Read from IPublishedContent / IUmbracoContextAccessor instead.",
                },
                {
                    "code": "ARCH-003",
                    "title": "Static service locator (Current)",
                    "severity": "warning",
                    "pattern": r"\bCurrent\.(Services|Factory|UmbracoContext)\b",
                    "files": _DOTNET_CODE,
                    "description": "The static Current accessor was removed in Umbraco 9+.",
                    "recommendation": "Inject the required services through the constructor.",
                },
            ],
        },
        {
            "agent": "security",
            "display_name": "Security",
            "category": "security",
            "description": "Configuration secrets and output encoding.",
            "rules": [
                {
                    "code": "SEC-001",
                    "title": "Unattended install password committed",
                    "severity": "critical",
                    "pattern": r"\"UnattendedUserPassword\"\s*:\s*\"[^\"]+\"",
                    "files": _APPSETTINGS,
                    "description": "The administrator password for unattended installs is in source control.",
                    "recommendation": "Supply it through an environment variable or user secrets.",
                },
                {
                    "code": "SEC-002",
                    "title": "Connection string with password",
                    "severity": "critical",
                    "pattern": r"\"umbracoDbDSN\"\s*:\s*\"[^\"]*password=(?!\$)[^;\"]+",
                    "ignore_case": True,
                    "files": _APPSETTINGS,
                    "description": "Database credentials are committed in clear text.",
                    "recommendation": "Use environment variables or a secret store for ConnectionStrings__umbracoDbDSN.",
                },
                dict(_HTML_RAW, code="SEC-003"),
                {
                    "code": "SEC-004",
                    "title": "HTTPS not enforced for the backoffice",
                    "severity": "warning",
                    "pattern": r"\"UseHttps\"\s*:\s*false",
                    "ignore_case": True,
                    "files": _APPSETTINGS,
                    "description": "Backoffice authentication cookies can travel over plain HTTP.",
                    "recommendation": "Set Umbraco:CMS:Global:UseHttps to true outside local development.",
                },
            ],
        },
        {
            "agent": "performance",
            "display_name": "Performance",
            "category": "performance",
            "description": "Content traversal and models builder configuration.",
            "rules": [
                {
                    "code": "PERF-001",
                    "title": "Descendants() traversal",
                    "severity": "warning",
                    "pattern": r"\.Descendants(OrSelf)?(<[^>]+>)?\(",
                    "files": _DOTNET_CODE,
                    "description": "Descendants walks the whole published cache subtree.",
                    "recommendation": "Use Examine or narrow the traversal with Children/FirstChild.",
                },
                {
                    "code": "PERF-002",
                    "title": "Models builder in InMemoryAuto mode",
                    "severity": "info",
                    "pattern": r"\"ModelsMode\"\s*:\s*\"InMemoryAuto\"",
                    "files": ["**/appsettings.Production.json", "**/appsettings.Staging.json"],
                    "description": "Models are compiled at runtime in a deployed environment.",
                    "recommendation": "Use SourceCodeAuto/SourceCodeManual and commit the generated models.",
                },
            ],
        },
        {
            "agent": "quality",
            "display_name": "Code Quality",
            "category": "quality",
            "description": "Error handling and maintainability.",
            "rules": [
                _EMPTY_CATCH,
                _TODO,
            ],
        },
        {
            "agent": "upgrade",
            "display_name": "Upgrade Readiness",
            "category": "platform",
            "description": "APIs removed or obsoleted in current Umbraco versions.",
            "rules": [
                {
                    "code": "UMB-001",
                    "title": "Umbraco 8 namespace in use",
                    "severity": "warning",
                    "pattern": r"using\s+Umbraco\.Web(\.Mvc|\.WebApi)?\s*;",
                    "files": _CS,
                    "description": "Umbraco.Web namespaces belong to the .NET Framework versions.",
                    "recommendation": "Migrate to Umbraco.Cms.Web.Common / Umbraco.Cms.Core.",
                },
                {
                    "code": "UMB-002",
                    "title": "UmbracoApiController is obsolete",
                    "severity": "warning",
                    "pattern": r":\s*UmbracoApiController\b",
                    "files": _CS,
                    "description": "UmbracoApiController is obsolete from Umbraco 14.",
                    "recommendation": "Use a standard ASP.NET Core controller with attribute routing.",
                },
                {
                    "code": "UMB-003",
                    "title": "AngularJS backoffice package manifest",
                    "severity": "info",
                    "pattern": r"\"javascript\"\s*:",
                    "files": ["**/App_Plugins/**/package.manifest"],
                    "description": "AngularJS backoffice extensions do not load in the new backoffice.",
                    "recommendation": "Rebuild the extension as a web component with umbraco-package.json.",
                },
            ],
        },
    ],
    "ignore_patterns": [
        "umbraco/Data/",
        "umbraco/Logs/",
        "umbraco/mediacache/",
        "umbraco/models/",
        "wwwroot/media/",
        "wwwroot/umbraco/",
    ],
    "guidance": [
        "Read content from the published cache (IPublishedContent), never IContentService on the front end.",
        "Reference content by GUID key or picker, never by integer node ID.",
        "Compose services with IComposer and constructor injection; the static Current accessor is gone.",
        "Keep credentials out of appsettings.json; use environment variables or user secrets.",
        "Use Examine for searches instead of Descendants() traversal.",
    ],
    "skills": ["umbraco-composer", "umbraco-view"],
}

# ---------------------------------------------------------------------------
# Optimizely CMS (EPiServer)
# ---------------------------------------------------------------------------

_OPTIMIZELY: dict[str, Any] = {
    "plugin": "optimizely-cms",
    "version": "1.0.0",
    "display_name": "Optimizely CMS",
    "description": "Static review of Optimizely CMS (EPiServer) solutions and Optimizely SDK usage.",
    "platform": "Optimizely CMS",
    "detection": [
        {
            "label": "EPiServer.CMS package reference",
            "files": "**/*.csproj",
            "pattern": r"Include=\"EPiServer\.CMS",
            "version_pattern": r"Include=\"EPiServer\.CMS(?:\.Core)?\"\s+Version=\"([^\"]+)\"",
            "weight": 4,
        },
        {"label": "[ContentType] definitions", "files": "**/*.cs", "pattern": r"\[ContentType\(", "weight": 2},
        {"label": "EPiServer section in appsettings", "files": "**/appsettings.json", "pattern": r"\"EPiServer\"\s*:", "weight": 1},
        {"label": "Optimizely SDK dependency", "files": "**/package.json", "pattern": r"\"@optimizely/optimizely-sdk\"", "weight": 2},
    ],
    "agents": [
        {
            "agent": "architecture",
            "display_name": "Architecture",
            "category": "architecture",
            "description": "Dependency management and content references.",
            "rules": [
                {
                    "code": "ARCH-001",
                    "title": "ServiceLocator.Current used",
                    "severity": "warning",
                    "pattern": r"ServiceLocator\.Current\.GetInstance",
                    "files": _DOTNET_CODE,
                    "description": "Service location hides dependencies and complicates testing.",
                    "recommendation": "Inject the service through the constructor.",
                },
                {
                    "code": "ARCH-002",
                    "title": "Content type without explicit GUID",
                    "severity": "warning",
                    "pattern": r"\[ContentType\((?![^)]*GUID\s*=)",
                    "ignore_case": True,
                    "files": _CS,
                    "description": "Without a GUID, renaming the class creates a new content type.",
                    "recommendation": "Give every [ContentType] a fixed GUID.",
                },
                {
                    "code": "ARCH-003",
                    "title": "Hardcoded ContentReference ID",
                    "severity": "info",
                    "pattern": r"new\s+ContentReference\(\s*\d+\s*\)",
                    "files": _CS,
                    "description": "Content IDs differ between environments.",
                    "recommendation": "Use a settings page property or ContentReference.StartPage.",
                },
            ],
        },
        {
            "agent": "security",
            "display_name": "Security",
            "category": "security",
            "description": "Secrets and output encoding.",
            "rules": [
                {
                    "code": "SEC-001",
                    "title": "Optimizely SDK key exposed to the browser",
                    "severity": "critical",
                    "pattern": r"sdkKey.*NEXT_PUBLIC|NEXT_PUBLIC_[A-Z0-9_]*SDK_?KEY",
                    "files": _JS + _ENV,
                    "exclude_files": ["**/node_modules/**"],
                    "description": "Datafile SDK keys for secure environments must stay server-side.",
                    "recommendation": "Initialize the SDK on the server or use a non-secure environment key.",
                },
                {
                    "code": "SEC-002",
                    "title": "Connection string with password",
                    "severity": "critical",
                    "pattern": r"\"EPiServerDB\"\s*:\s*\"[^\"]*password=(?!\$)[^;\"]+",
                    "ignore_case": True,
                    "files": _APPSETTINGS,
                    "description": "Database credentials are committed in clear text.",
                    "recommendation": "Use environment variables or DXP secrets for ConnectionStrings__EPiServerDB.",
                },
                dict(_HTML_RAW, code="SEC-003"),
                {
                    "code": "SEC-004",
                    "title": "AllowAnonymous on controller",
                    "severity": "info",
                    "pattern": r"\[AllowAnonymous\]",
                    "files": _CS,
                    "description": "Anonymous access overrides access rights configured in the CMS.",
                    "recommendation": "Confirm the endpoint is meant to be public.",
                },
            ],
        },
        {
            "agent": "performance",
            "display_name": "Performance",
            "category": "performance",
            "description": "Content loading and output caching.",
            "rules": [
                {
                    "code": "PERF-001",
                    "title": "GetDescendents traversal",
                    "severity": "warning",
                    "pattern": r"\.GetDescendents\(",
                    "files": _DOTNET_CODE,
                    "description": "Loads every descendant reference of a subtree.",
                    "recommendation": "Use Search & Navigation (Find) or a bounded GetChildren.",
                },
                {
                    "code": "PERF-002",
                    "title": "Content loaded inside a view",
                    "severity": "warning",
                    "pattern": r"\.(GetChildren|Get)<[^>]+>\(",
                    "files": _VIEWS,
                    "description": "Repository calls in views run on every render and bypass the controller.",
                    "recommendation": "Load content in the controller or view model.",
                },
                {
                    "code": "PERF-003",
                    "title": "Output caching not configured",
                    "severity": "info",
                    "mode": "absent",
                    "pattern": r"OutputCach",
                    "files": ["**/Startup.cs", "**/Program.cs"],
                    "description": "No output caching middleware is registered.",
                    "recommendation": "Register output caching for anonymous page requests.",
                },
            ],
        },
        {
            "agent": "quality",
            "display_name": "Code Quality",
            "category": "quality",
            "description": "Error handling and maintainability.",
            "rules": [
                _EMPTY_CATCH,
                _TODO,
            ],
        },
        {
            "agent": "content-modeling",
            "display_name": "Content Modeling",
            "category": "platform",
            "description": "Content type definition conventions.",
            "rules": [
                {
                    "code": "CMOD-001",
                    "title": "Non-virtual property on content type",
                    "severity": "warning",
                    "pattern": r"^[ \t]*public[ \t]+(?!virtual\b|override\b|static\b)[\w<>?,. \t]+[ \t]+\w+[ \t]*\{[ \t]*get;[ \t]*set;[ \t]*\}",
                    "files": ["**/Models/Pages/**/*.cs", "**/Models/Blocks/**/*.cs", "**/Models/Media/**/*.cs"],
                    "description": "Only virtual properties are intercepted and persisted by the CMS.",
                    "recommendation": "Declare content properties as public virtual.",
                },
                {
                    "code": "CMOD-002",
                    "title": "Content type without description",
                    "severity": "info",
                    "pattern": r"\[ContentType\((?![^)]*Description\s*=)",
                    "files": _CS,
                    "description": "Editors see no help text when creating content of this type.",
                    "recommendation": "Add a Description to the [ContentType] attribute.",
                },
            ],
        },
    ],
    "ignore_patterns": [
        "App_Data/",
        "modules/_protected/",
        "wwwroot/dist/",
        "wwwroot/ClientResources/",
    ],
    "guidance": [
        "Inject IContentLoader / IContentRepository through constructors; avoid ServiceLocator.Current.",
        "Give every [ContentType] a fixed GUID and a Description; declare properties public virtual.",
        "Load content in controllers or view models, not in Razor views.",
        "Keep Optimizely SDK keys and connection strings server-side and out of source control.",
        "Use Search & Navigation for listings instead of GetDescendents.",
    ],
    "skills": ["optimizely-content-type"],
}

BUILT_IN_PLUGINS: dict[str, dict[str, Any]] = {
    "sitecore-classic": _SITECORE_CLASSIC,
    "sitecore-xmcloud": _SITECORE_XMCLOUD,
    "umbraco": _UMBRACO,
    "optimizely-cms": _OPTIMIZELY,
}

GENERIC_IGNORE_PATTERNS: list[str] = _GENERIC_IGNORE
