"""Shared pytest fixtures for cmsaudit tests.

Each ``*_project`` fixture writes a small but realistic codebase for one
platform under ``tmp_path`` and returns its root.
"""

from __future__ import annotations

import logging
import urllib.request
from collections.abc import Generator
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
from click.testing import CliRunner

from cmsaudit.rules import RuleRegistry, load_registry


def write_files(root: Path, files: dict[str, str]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


SITECORE_FILES: dict[str, str] = {
    "src/Project/Site/website/Site.Website.csproj": (
        '<Project Sdk="Microsoft.NET.Sdk">\n'
        "  <ItemGroup>\n"
        '    <PackageReference Include="Sitecore.Kernel" Version="10.3.0" />\n'
        '    <PackageReference Include="Sitecore.Mvc" Version="10.3.0" />\n'
        "  </ItemGroup>\n"
        "</Project>\n"
    ),
    "src/Project/Site/website/App_Config/Include/Site.config": (
        '<configuration xmlns:patch="http://www.sitecore.net/xmlconfig/">\n'
        "  <sitecore>\n"
        "    <settings />\n"
        "  </sitecore>\n"
        "</configuration>\n"
    ),
    "src/Project/Site/website/web.config": (
        "<configuration>\n"
        '  <sitecore database="SqlServer" />\n'
        "  <system.web>\n"
        '    <compilation debug="true" targetFramework="4.8" />\n'
        "  </system.web>\n"
        "</configuration>\n"
    ),
    "src/Feature/Navigation/code/Controllers/NavigationController.cs": (
        "using Sitecore.Data.Items;\n"
        "public class NavigationController : Controller\n"
        "{\n"
        "    public ActionResult Index()\n"
        "    {\n"
        '        var home = Sitecore.Context.Database.GetItem("/sitecore/content/Home");\n'
        "        try { Render(home); }\n"
        "        catch (Exception) { }\n"
        "        return View();\n"
        "    }\n"
        "}\n"
    ),
}

UMBRACO_FILES: dict[str, str] = {
    "src/Site/Site.csproj": (
        '<Project Sdk="Microsoft.NET.Sdk.Web">\n'
        "  <ItemGroup>\n"
        '    <PackageReference Include="Umbraco.Cms" Version="13.2.0" />\n'
        "  </ItemGroup>\n"
        "</Project>\n"
    ),
    "src/Site/appsettings.json": (
        "{\n"
        '  "Umbraco": {\n'
        '    "CMS": {\n'
        '      "Unattended": { "UnattendedUserPassword": "hunter2" }\n'
        "    }\n"
        "  }\n"
        "}\n"
    ),
    "src/Site/Views/Home.cshtml": (
        "@inherits UmbracoViewPage\n"
        "<h1>@Model.Name</h1>\n"
        '<div>@Html.Raw(Model.Value("bodyText"))</div>\n'
    ),
}

OPTIMIZELY_FILES: dict[str, str] = {
    "src/Web/Web.csproj": (
        '<Project Sdk="Microsoft.NET.Sdk.Web">\n'
        "  <ItemGroup>\n"
        '    <PackageReference Include="EPiServer.CMS" Version="12.20.0" />\n'
        "  </ItemGroup>\n"
        "</Project>\n"
    ),
    "src/Web/Models/Pages/ArticlePage.cs": (
        '[ContentType(DisplayName = "Article", GUID = "b1c2d3e4-0000-0000-0000-000000000001", Description = "An article")]\n'
        "public class ArticlePage : PageData\n"
        "{\n"
        "    public virtual string Heading { get; set; }\n"
        "    public string Summary { get; set; }\n"
        "}\n"
    ),
    "src/Web/Startup.cs": (
        "public class Startup\n"
        "{\n"
        "    public void ConfigureServices(IServiceCollection services)\n"
        "    {\n"
        "        services.AddCms();\n"
        "    }\n"
        "}\n"
    ),
    "src/Web/Controllers/StartPageController.cs": (
        "public class StartPageController : PageController<StartPage>\n"
        "{\n"
        "    public IActionResult Index(StartPage currentPage)\n"
        "    {\n"
        "        var loader = ServiceLocator.Current.GetInstance<IContentLoader>();\n"
        "        return View(currentPage);\n"
        "    }\n"
        "}\n"
    ),
}

XMCLOUD_FILES: dict[str, str] = {
    "package.json": (
        "{\n"
        '  "name": "xmcloud-head",\n'
        '  "dependencies": {\n'
        '    "@sitecore-jss/sitecore-jss-nextjs": "^21.6.0",\n'
        '    "next": "14.1.0"\n'
        "  }\n"
        "}\n"
    ),
    "xmcloud.build.json": '{ "renderingHosts": {} }\n',
    "src/components/Promo.tsx": (
        "export const Promo = (props: any): JSX.Element => (\n"
        "  <div dangerouslySetInnerHTML={{ __html: props.fields.body.value }} />\n"
        ");\n"
    ),
    ".env": "NEXT_PUBLIC_SITECORE_API_KEY=abc123\n",
}


class FakeResponse:
    status = 204

    def __init__(self) -> None:
        self.closed = False

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc: object) -> None:
        self.closed = True


class UrlopenRecorder:
    """Stands in for ``urllib.request.urlopen``; keeps each request and the response it handed out."""

    def __init__(self) -> None:
        self.calls: list[tuple[urllib.request.Request, float]] = []
        self.responses: list[FakeResponse] = []

    def __call__(self, req: urllib.request.Request, timeout: float) -> FakeResponse:
        self.calls.append((req, timeout))
        response = FakeResponse()
        self.responses.append(response)
        return response


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Generator[None, None, None]:
    """Drop file handlers installed by a test so log files never leak across tmp dirs."""
    yield
    logger = logging.getLogger("cmsaudit")
    for handler in [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]:
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture(autouse=True)
def _no_tracking(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests never send usage pings unless they configure a URL themselves."""
    monkeypatch.delenv("CMSAUDIT_TRACKING_URL", raising=False)
    monkeypatch.delenv("CLAUDE_PLUGIN_NO_TRACKING", raising=False)


@pytest.fixture
def urlopen_recorder(monkeypatch: pytest.MonkeyPatch) -> UrlopenRecorder:
    rec = UrlopenRecorder()
    monkeypatch.setattr(urllib.request, "urlopen", rec)
    return rec


@pytest.fixture
def registry() -> RuleRegistry:
    return load_registry()


@pytest.fixture
def sitecore_project(tmp_path: Path) -> Path:
    return write_files(tmp_path, SITECORE_FILES)


@pytest.fixture
def umbraco_project(tmp_path: Path) -> Path:
    return write_files(tmp_path, UMBRACO_FILES)


@pytest.fixture
def optimizely_project(tmp_path: Path) -> Path:
    return write_files(tmp_path, OPTIMIZELY_FILES)


@pytest.fixture
def xmcloud_project(tmp_path: Path) -> Path:
    return write_files(tmp_path, XMCLOUD_FILES)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
