import os


def export_variables(values, export_file=None, environ=None):
    """Expose ``values`` to the current process and to later CI steps.

    CI runners (Appcircle's ``AC_ENV_FILE_PATH``, GitHub's ``GITHUB_ENV``) pick
    up ``KEY=value`` lines appended to a file they provide.
    """
    env = os.environ if environ is None else environ
    env.update(values)
    if export_file:
        with open(export_file, "a", encoding="utf-8") as f:
            for key, value in values.items():
                f.write(f"{key}={value}\n")
    return values
