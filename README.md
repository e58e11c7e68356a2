# pigen

`pigen` is a command-line client for a pigen core service. It deploys
the core to Cloud Run, installs plugins declared in a plugins file,
reads their outputs, renders pipeline step files that refer to those
outputs and to local variables, and asks the core to generate a CI/CD
script and to connect a repository with a build trigger.

## Installation

```
pip install .
```

This installs the `pigen` command (`pigen.cli:main`).

## Configuration

Run the interactive setup once:

```
pigen config init
```

It shows a menu of cloud providers (GCP, AWS, AZURE; arrow keys to
move, enter to select) and, for GCP, a small form for the project ID
and region (tab or arrows to switch field, enter to submit). It then
looks for a Cloud Run service named `pigen-core` in that project and
region, creates it if it is missing, allows public invocation of it,
and writes its URI under `config.pigen_core.endpoint` in
`~/.pigen.yaml`.

Access to Google Cloud uses the bearer token in the
`GOOGLE_OAUTH_ACCESS_TOKEN` environment variable, or, when that is not
set, the token of the instance metadata server.

Another settings file can be chosen with the root option, placed
before the subcommand:

```
pigen --config ./my-settings.yaml plugin install
```

## Plugins

Plugins are listed in `pigen-plugins.yaml`:

```yaml
plugins:
  - plugin:
      label: my_bucket
      # plugin-specific settings
```

```
pigen plugin install                  # install every plugin in the file
pigen plugin install -f other.yaml    # install from another plugins file
pigen plugin output my_bucket         # show one plugin's outputs
pigen plugin destroy my_bucket        # destroy a plugin
pigen plugin destroy my_bucket --update-yaml   # and drop it from the file
```

Without `--update-yaml`, `destroy` asks whether the plugin should also
be removed from `pigen-plugins.yaml`. `output` and `destroy` always
read `pigen-plugins.yaml` in the current directory.

## Templates

Plugin files and step files may refer to plugin outputs and to values
in `.env.pigen` (which must exist in the current directory):

```yaml
bucket: {{ .Plugins.my_bucket.name }}
token: {{ .ENV.DEPLOY_TOKEN }}
```

Only field paths are supported; labels and keys used in a path must be
identifiers (letters, digits and underscores). Trim markers (`{{-`,
`-}}`) and comments (`{{/* ... */}}`) are honoured. A missing output
key prints `<no value>`; a missing `.ENV` name prints nothing.
Outputs of every plugin referred to are fetched from the core before
rendering.

## Pipelines

```
pigen pipeline generate                       # writes cloudbuild.yaml
pigen pipeline setup                          # connects the repository, creates a trigger
pigen pipeline -f steps.yaml generate         # use another steps file
```

The steps file defaults to `pigen-steps.yaml`. `pipeline setup` checks
again every five seconds, up to 36 times (three minutes), while the
core reports that an action in the browser is needed to finish
linking the repository; follow the printed link to complete it.

## Library use

The pieces are importable:

- `pigen.plugins.PigenClient` — `install()`, `destroy(name)`,
  `get_output(name)`, `get_all_outputs(plugins)`, `parse_file(content)`;
  plus `extract_template_dependencies`, `load_plugins` and `remove_plugin`.
- `pigen.templater.render_template`, `pigen_replace` and `load_env_file`.
- `pigen.pipeline.generate_script`, `setup_pipeline`, `connect_repo` and
  `create_trigger`.
- `pigen.cloud_run.CloudRunDeployer` — `service_uri()` and `deploy()`.
- `pigen.settings.Config`, `load_settings`, `core_endpoint` and
  `default_config_path`.
- `pigen.helpers` — YAML/JSON helpers, `clean_plugin_output` and
  `CoreResponse`.

## What it does not do

- Only GCP can be set up: choosing AWS or AZURE in `pigen config init`
  ends with "unsupported cloud provider".
- `pigen plugin list` prints only "list called" and the `core-url`
  setting; `pigen plugin add` and `pigen project init` print a line
  and do nothing else.