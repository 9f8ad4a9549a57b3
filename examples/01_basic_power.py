"""
Basic Power Analysis Example
============================

This example estimates power for a three-arm cluster-randomised trial with a
binary outcome. Clinics are randomised to usual care or one of two
interventions, and the outcome is whether each patient quits smoking.
"""

import crtpower

print("=" * 60)
print("BASIC POWER ANALYSIS EXAMPLE")
print("=" * 60)

# 1. Describe the design
# 10 clinics per arm, 40 patients per clinic.
# Quit rates: 30% under usual care, 40% and 50% under the interventions.
# sigma_b_sq is the between-clinic variance on the logit scale.
model = crtpower.MultiArmBinaryPower(
    narms=3,
    nclusters=10,
    nsubjects=40,
    probs=[0.30, 0.40, 0.50],
    sigma_b_sq=0.1,
)
model.set_seed(2137)

print(f"\nDesign: {model}")

# 2. Marginal model (GEE): fast, robust standard errors
print("\n1. GEE ANALYSIS:")
gee_result = model.set_method("gee").find_power(nsim=200, print_results=True)

# 3. Mixed model (GLMM): random clinic intercepts, likelihood-ratio omnibus test
print("\n2. GLMM ANALYSIS:")
glmm_result = model.set_method("glmm").find_power(nsim=200, print_results=True)

print("\nOmnibus power (GEE vs GLMM):")
print(f"  GEE:  {gee_result['power'].loc['overall', 'power']:.3f}")
print(f"  GLMM: {glmm_result['power'].loc['overall', 'power']:.3f}")

# 4. Unequal clinic sizes: list the size of every clinic in each arm
print("\n3. UNEQUAL CLUSTER SIZES:")
uneven = crtpower.MultiArmBinaryPower(
    narms=3,
    nsubjects=[[30, 35, 40, 45, 50] * 2, [25, 40, 55] * 3, [40] * 10],
    probs=[0.30, 0.40, 0.50],
    sigma_b_sq=[0.1, 0.1, 0.15],
)
uneven_result = uneven.set_method("gee").set_seed(2137).find_power(nsim=200, quiet=True)
print(uneven_result["arm_power"])
