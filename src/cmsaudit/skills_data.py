# src/cmsaudit/skills_data.py
"""Built-in skill documents: short reference examples per platform.

``enhance --include-examples`` appends the skills a plugin lists to the
generated guidance file. Pure data.
"""

from __future__ import annotations

from typing import TypedDict


class Skill(TypedDict):
    name: str
    title: str
    body: str


_SITECORE_CLASSIC_RENDERING = '''\
Controller rendering that reads its datasource and injects its dependencies:

```csharp
public class PromoController : Controller
{
    private readonly IPromoRepository _promos;

    public PromoController(IPromoRepository promos)
    {
        _promos = promos;
    }

    public ActionResult Promo()
    {
        var datasource = RenderingContext.Current.Rendering.Item;
        if (datasource == null)
        {
            return new EmptyResult();
        }
        return View(_promos.Get(datasource));
    }
}
```

Register the controller in a Feature-level configurator:

```csharp
public class ServicesConfigurator : IServicesConfigurator
{
    public void Configure(IServiceCollection services)
    {
        services.AddTransient<IPromoRepository, PromoRepository>();
        services.AddTransient<PromoController>();
    }
}
```
'''

_SITECORE_CLASSIC_CONFIG_PATCH = '''\
Role-aware include patch (App_Config/Include/Feature/Feature.Promo.config):

```xml
<configuration xmlns:patch="http://www.sitecore.net/xmlconfig/"
               xmlns:role="http://www.sitecore.net/xmlconfig/role/">
  <sitecore role:require="Standalone or ContentDelivery">
    <services>
      <configurator type="Feature.Promo.ServicesConfigurator, Feature.Promo" />
    </services>
  </sitecore>
</configuration>
```
'''

_XMCLOUD_COMPONENT = '''\
Editable JSS component using field helpers:

```tsx
import { Text, RichText, Field, withDatasourceCheck } from '@sitecore-jss/sitecore-jss-nextjs';
import { ComponentProps } from 'lib/component-props';

type PromoProps = ComponentProps & {
  fields: {
    heading: Field<string>;
    body: Field<string>;
  };
};

const Promo = ({ fields }: PromoProps): JSX.Element => (
  <section className="promo">
    <Text tag="h2" field={fields.heading} />
    <RichText field={fields.body} />
  </section>
);

export default withDatasourceCheck()<PromoProps>(Promo);
```
'''

_UMBRACO_COMPOSER = '''\
Registering services with a composer:

```csharp
public class SiteComposer : IComposer
{
    public void Compose(IUmbracoBuilder builder)
    {
        builder.Services.AddScoped<INavigationService, NavigationService>();
    }
}
```
'''

_UMBRACO_VIEW = '''\
Strongly typed view reading the published cache:

```cshtml
@inherits Umbraco.Cms.Web.Common.Views.UmbracoViewPage<ContentModels.HomePage>
@using ContentModels = Umbraco.Cms.Web.Common.PublishedModels;

<h1>@Model.Title</h1>
@foreach (var child in Model.Children<ContentModels.ArticlePage>())
{
    <a href="@child.Url()">@child.Name</a>
}
```
'''

_OPTIMIZELY_CONTENT_TYPE = '''\
Page type with a fixed GUID, description and virtual properties:

```csharp
[ContentType(
    DisplayName = "Article",
    GUID = "6a7b3c1e-4f2d-4a8e-9c3b-2d1f0e9a8b7c",
    Description = "Editorial article with body text")]
public class ArticlePage : PageData
{
    [CultureSpecific]
    [Display(Name = "Heading", Order = 10)]
    public virtual string Heading { get; set; }

    [CultureSpecific]
    public virtual XhtmlString MainBody { get; set; }
}
```
'''

BUILT_IN_SKILLS: dict[str, Skill] = {
    "sitecore-classic-rendering": Skill(
        name="sitecore-classic-rendering",
        title="Sitecore controller renderings",
        body=_SITECORE_CLASSIC_RENDERING,
    ),
    "sitecore-classic-config-patch": Skill(
        name="sitecore-classic-config-patch",
        title="Sitecore configuration patches",
        body=_SITECORE_CLASSIC_CONFIG_PATCH,
    ),
    "sitecore-xmcloud-component": Skill(
        name="sitecore-xmcloud-component",
        title="XM Cloud JSS components",
        body=_XMCLOUD_COMPONENT,
    ),
    "umbraco-composer": Skill(
        name="umbraco-composer",
        title="Umbraco composers",
        body=_UMBRACO_COMPOSER,
    ),
    "umbraco-view": Skill(
        name="umbraco-view",
        title="Umbraco Razor views",
        body=_UMBRACO_VIEW,
    ),
    "optimizely-content-type": Skill(
        name="optimizely-content-type",
        title="Optimizely content types",
        body=_OPTIMIZELY_CONTENT_TYPE,
    ),
}


def get_skills(names: tuple[str, ...] | list[str]) -> list[Skill]:
    """Skills for *names*, in order. Unknown names are skipped."""
    return [BUILT_IN_SKILLS[n] for n in names if n in BUILT_IN_SKILLS]
