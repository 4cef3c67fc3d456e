"""
Default settings shared by the metadata and ghost-cell routines.

The template can be modified at runtime through `update_configurations`,
e.g. to loosen the tolerance used when rounding refinement ratios:

>>> from amrmeta.utils.configurations import update_configurations
>>> update_configurations(ratio_tolerance=1e-4)
"""

configuration_template = {
    # refinement ratios must lie within this distance of an integer
    'ratio_tolerance': 1e-6,
    # added before flooring (grid_origin - origin) / spacing in box construction
    'index_tolerance': 1e-6,
    # ratio assigned to the finest level, which has no finer level to compare to
    'default_refinement_ratio': 2,
    'log_level': 'WARNING',
}

configurations = configuration_template.copy()


def get_configuration(key: str):

    if key not in configurations:
        raise ValueError(f"Key '{key}' not found in configurations")
    return configurations[key]


def update_configurations(**kwargs):
    """
    Modify the configurations, the keys must already exist in the template
    """
    for key, value in kwargs.items():
        if key in configurations:
            configurations[key] = value
        else:
            raise ValueError(f"Key '{key}' not found in configurations")


def reset_configurations():

    configurations.clear()
    configurations.update(configuration_template)
