# Puts the repository root on sys.path, so the tests run without installing the package.
